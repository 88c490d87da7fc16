"""Overlay composition — render base + overlay into concrete manifests.

Two compositors share one signature, ``(files, overlay) -> list[dict]``:
render_overlay runs in-process over the subset of kustomization fields the
bundled trees use, KustomizeBinary shells out to a real ``kustomize``.
"""

import base64
import copy
import hashlib
import json
import logging
import os
import posixpath
import subprocess
import tempfile
from dataclasses import dataclass
from typing import Callable

import yaml

from freighter.pacts.errors import CompositionError

logger = logging.getLogger(__name__)

Compositor = Callable[[dict[str, str], str], list[dict]]

DESCRIPTOR_NAME = "kustomization.yaml"

# Kinds carrying a pod template at spec.template.spec
_POD_TEMPLATE_KINDS = ("Deployment", "ReplicaSet", "StatefulSet", "DaemonSet", "Job")

# Kinds the replicas field may scale
_SCALABLE_KINDS = ("Deployment", "ReplicaSet", "StatefulSet")


@dataclass
class _Rendered:
    """A manifest plus the name it carried in its template file."""
    manifest: dict
    origin: str
    hashed: bool = False

    @property
    def kind(self) -> str:
        return self.manifest.get("kind", "")

    @property
    def name(self) -> str:
        return self.manifest["metadata"]["name"]

    @name.setter
    def name(self, value: str) -> None:
        self.manifest["metadata"]["name"] = value

    def matches(self, kind: str, name: str) -> bool:
        return self.kind == kind and name in (self.name, self.origin)


# ---------------------------------------------------------------------------
# Parsing
# ---------------------------------------------------------------------------

def _join(directory: str, entry: str) -> str:
    """Resolve entry relative to directory, refusing to leave the tree."""
    path = posixpath.normpath(posixpath.join(directory, entry))
    if path.startswith(".."):
        raise CompositionError(f"'{entry}' in '{directory}' points outside the manifest tree")
    return path


def _load_yaml(files: dict[str, str], path: str) -> list:
    try:
        return [doc for doc in yaml.safe_load_all(files[path]) if doc is not None]
    except KeyError as err:
        raise CompositionError(f"'{path}' not found") from err
    except yaml.YAMLError as err:
        raise CompositionError(f"error parsing '{path}': {err}") from err


def _load_descriptor(files: dict[str, str], directory: str) -> dict:
    docs = _load_yaml(files, f"{directory}/{DESCRIPTOR_NAME}")
    if len(docs) > 1 or (docs and not isinstance(docs[0], dict)):
        raise CompositionError(f"descriptor in '{directory}' is not a single mapping")
    return docs[0] if docs else {}


def _load_resources(files: dict[str, str], path: str) -> list[_Rendered]:
    """Load every manifest of a resource file."""
    items = []
    for doc in _load_yaml(files, path):
        if not isinstance(doc, dict):
            raise CompositionError(f"'{path}' contains a non-mapping document")
        name = (doc.get("metadata") or {}).get("name")
        if not name or not doc.get("kind"):
            raise CompositionError(f"'{path}' contains a manifest without kind or name")
        items.append(_Rendered(manifest=doc, origin=name))
    return items


# ---------------------------------------------------------------------------
# Generators
# ---------------------------------------------------------------------------

def _generator_pairs(gen: dict, files: dict[str, str], directory: str) -> dict[str, str]:
    """Collect literal and file sources of a generator into a flat dict."""
    pairs: dict[str, str] = {}
    for literal in gen.get("literals") or []:
        key, sep, val = str(literal).partition("=")
        if not sep or not key:
            raise CompositionError(f"generator '{gen.get('name')}': bad literal '{literal}'")
        pairs[key] = val
    for source in gen.get("files") or []:
        key, sep, rel = str(source).partition("=")
        if not sep:
            key, rel = posixpath.basename(source), source
        path = _join(directory, rel)
        if path not in files:
            raise CompositionError(f"generator '{gen.get('name')}': file '{rel}' not found")
        pairs[key] = files[path]
    return pairs


def _generated_manifest(kind: str, gen: dict, pairs: dict[str, str]) -> dict:
    manifest = {"apiVersion": "v1", "kind": kind, "metadata": {"name": gen["name"]}}
    if kind == "Secret":
        manifest["type"] = gen.get("type", "Opaque")
        manifest["data"] = {k: base64.b64encode(v.encode("utf-8")).decode("ascii")
                            for k, v in pairs.items()}
    else:
        manifest["data"] = pairs
    return manifest


def _run_generators(kust: dict, items: list[_Rendered], files: dict[str, str],
                    directory: str) -> None:
    """Append (or merge into) Secrets and ConfigMaps declared by generators."""
    no_hash_default = bool((kust.get("generatorOptions") or {}).get("disableNameSuffixHash"))
    for field_name, kind in (("secretGenerator", "Secret"), ("configMapGenerator", "ConfigMap")):
        for gen in kust.get(field_name) or []:
            if not gen.get("name"):
                raise CompositionError(f"{field_name} entry in '{directory}' has no name")
            pairs = _generator_pairs(gen, files, directory)
            behavior = gen.get("behavior", "create")
            existing = next((i for i in items if i.kind == kind and i.origin == gen["name"]), None)
            if behavior in ("merge", "replace"):
                if existing is None:
                    raise CompositionError(
                        f"{field_name} '{gen['name']}' has behavior {behavior} but no base to act on"
                    )
                fresh = _generated_manifest(kind, gen, pairs)
                if behavior == "merge":
                    existing.manifest.setdefault("data", {}).update(fresh["data"])
                else:
                    existing.manifest["data"] = fresh["data"]
                continue
            if existing is not None:
                raise CompositionError(f"{field_name} '{gen['name']}' already exists")
            options = gen.get("options") or {}
            hashed = not options.get("disableNameSuffixHash", no_hash_default)
            items.append(_Rendered(manifest=_generated_manifest(kind, gen, pairs),
                                   origin=gen["name"], hashed=hashed))


# ---------------------------------------------------------------------------
# Patches
# ---------------------------------------------------------------------------

def _merge_lists(base: list, patch: list) -> list:
    """Merge lists of named mappings by name; replace any other list."""
    named = all(isinstance(x, dict) and "name" in x for x in base + patch)
    if not named or not base:
        return copy.deepcopy(patch)
    merged = [copy.deepcopy(x) for x in base]
    for entry in patch:
        target = next((m for m in merged if m["name"] == entry["name"]), None)
        if target is None:
            merged.append(copy.deepcopy(entry))
        else:
            _deep_merge(target, entry)
    return merged


def _deep_merge(base: dict, overrides: dict) -> None:
    """Recursively merge overrides into base. None values delete keys."""
    for key, val in overrides.items():
        if val is None:
            base.pop(key, None)
        elif isinstance(val, dict) and isinstance(base.get(key), dict):
            _deep_merge(base[key], val)
        elif isinstance(val, list) and isinstance(base.get(key), list):
            base[key] = _merge_lists(base[key], val)
        else:
            base[key] = copy.deepcopy(val)


def _patch_documents(kust: dict, files: dict[str, str], directory: str) -> list[tuple[dict, dict]]:
    """Return (target selector, patch body) pairs from both patch fields."""
    out = []
    for rel in kust.get("patchesStrategicMerge") or []:
        for doc in _load_yaml(files, _join(directory, rel)):
            out.append(({}, doc))
    for entry in kust.get("patches") or []:
        if "path" in entry:
            docs = _load_yaml(files, _join(directory, entry["path"]))
        elif "patch" in entry:
            try:
                docs = [d for d in yaml.safe_load_all(entry["patch"]) if d is not None]
            except yaml.YAMLError as err:
                raise CompositionError(f"error parsing inline patch in '{directory}': {err}") from err
        else:
            raise CompositionError(f"patch entry in '{directory}' has neither path nor patch")
        for doc in docs:
            out.append((entry.get("target") or {}, doc))
    return out


def _apply_patches(kust: dict, items: list[_Rendered], files: dict[str, str],
                   directory: str) -> None:
    for target, doc in _patch_documents(kust, files, directory):
        if not isinstance(doc, dict):
            raise CompositionError(f"patch in '{directory}' is not a mapping")
        body = copy.deepcopy({k: v for k, v in doc.items() if k not in ("apiVersion", "kind")})
        # a bare "metadata:" key parses as None and must not delete the target's
        meta = body.pop("metadata", None) or {}
        if not isinstance(meta, dict):
            raise CompositionError(f"patch in '{directory}' has non-mapping metadata")
        kind = target.get("kind") or doc.get("kind", "")
        name = target.get("name") or meta.get("name", "")
        matched = [i for i in items if i.matches(kind, name)]
        if not matched:
            raise CompositionError(f"no matches for patch {kind}/{name} in '{directory}'")
        if meta:
            meta.pop("name", None)
            body["metadata"] = meta
        for item in matched:
            _deep_merge(item.manifest, body)


def _apply_replicas(kust: dict, items: list[_Rendered], directory: str) -> None:
    for entry in kust.get("replicas") or []:
        name, count = entry.get("name"), entry.get("count")
        if not isinstance(count, int) or count < 0:
            raise CompositionError(f"replicas entry '{name}' in '{directory}' has invalid count")
        matched = [i for i in items if i.kind in _SCALABLE_KINDS and name in (i.name, i.origin)]
        if not matched:
            raise CompositionError(f"replicas entry '{name}' in '{directory}' matches nothing")
        for item in matched:
            item.manifest.setdefault("spec", {})["replicas"] = count


# ---------------------------------------------------------------------------
# Renames and references
# ---------------------------------------------------------------------------

def _rename(ref: dict, key: str, kind: str, renames: dict[tuple[str, str], str]) -> None:
    if isinstance(ref, dict) and (kind, ref.get(key)) in renames:
        ref[key] = renames[(kind, ref[key])]


def _rewrite_pod_spec(pod_spec: dict, renames: dict[tuple[str, str], str]) -> None:
    """Point a pod spec's secret/configmap/pvc/serviceaccount refs at renamed objects."""
    _rename(pod_spec, "serviceAccountName", "ServiceAccount", renames)
    _rename(pod_spec, "serviceAccount", "ServiceAccount", renames)
    for ips in pod_spec.get("imagePullSecrets") or []:
        _rename(ips, "name", "Secret", renames)
    for vol in pod_spec.get("volumes") or []:
        _rename(vol.get("secret"), "secretName", "Secret", renames)
        _rename(vol.get("configMap"), "name", "ConfigMap", renames)
        _rename(vol.get("persistentVolumeClaim"), "claimName", "PersistentVolumeClaim", renames)
    containers = (pod_spec.get("containers") or []) + (pod_spec.get("initContainers") or [])
    for container in containers:
        for env in container.get("env") or []:
            value_from = env.get("valueFrom") or {}
            _rename(value_from.get("secretKeyRef"), "name", "Secret", renames)
            _rename(value_from.get("configMapKeyRef"), "name", "ConfigMap", renames)
        for env_from in container.get("envFrom") or []:
            _rename(env_from.get("secretRef"), "name", "Secret", renames)
            _rename(env_from.get("configMapRef"), "name", "ConfigMap", renames)


def _rewrite_references(items: list[_Rendered], renames: dict[tuple[str, str], str]) -> None:
    if not renames:
        return
    for item in items:
        spec = item.manifest.get("spec") or {}
        if item.kind in _POD_TEMPLATE_KINDS:
            _rewrite_pod_spec((spec.get("template") or {}).get("spec") or {}, renames)
        elif item.kind == "Pod":
            _rewrite_pod_spec(spec, renames)
        elif item.kind == "HorizontalPodAutoscaler":
            target = spec.get("scaleTargetRef") or {}
            _rename(target, "name", target.get("kind", ""), renames)


def _apply_names(kust: dict, items: list[_Rendered]) -> None:
    prefix, suffix = kust.get("namePrefix") or "", kust.get("nameSuffix") or ""
    if not prefix and not suffix:
        return
    renames = {}
    for item in items:
        new = f"{prefix}{item.name}{suffix}"
        renames[(item.kind, item.name)] = new
        item.name = new
    _rewrite_references(items, renames)


def _apply_labels(kust: dict, items: list[_Rendered]) -> None:
    labels = kust.get("commonLabels") or {}
    if not labels:
        return
    for item in items:
        item.manifest["metadata"].setdefault("labels", {}).update(labels)
        spec = item.manifest.get("spec")
        if item.kind in _POD_TEMPLATE_KINDS and isinstance(spec, dict):
            spec.setdefault("selector", {}).setdefault("matchLabels", {}).update(labels)
            template = spec.setdefault("template", {})
            template.setdefault("metadata", {}).setdefault("labels", {}).update(labels)
        elif item.kind == "Service" and isinstance(spec, dict):
            spec.setdefault("selector", {}).update(labels)


def _content_hash(manifest: dict) -> str:
    """Short stable hash of a generated object's payload."""
    payload = {k: manifest.get(k) for k in ("kind", "type", "data")}
    digest = hashlib.sha256(json.dumps(payload, sort_keys=True).encode("utf-8")).hexdigest()
    return digest[:10]


def _apply_hash_suffixes(items: list[_Rendered]) -> None:
    renames = {}
    for item in items:
        if item.hashed:
            new = f"{item.name}-{_content_hash(item.manifest)}"
            renames[(item.kind, item.name)] = new
            item.name = new
    _rewrite_references(items, renames)


# ---------------------------------------------------------------------------
# Build
# ---------------------------------------------------------------------------

def _build(files: dict[str, str], directory: str, stack: tuple[str, ...]) -> list[_Rendered]:
    """Build one kustomization directory, recursing into nested ones."""
    if directory in stack:
        raise CompositionError(f"cycle detected: {' -> '.join(stack + (directory,))}")
    kust = _load_descriptor(files, directory)

    items: list[_Rendered] = []
    for entry in kust.get("resources") or []:
        path = _join(directory, entry)
        if f"{path}/{DESCRIPTOR_NAME}" in files:
            items.extend(_build(files, path, stack + (directory,)))
        elif path in files:
            items.extend(_load_resources(files, path))
        else:
            raise CompositionError(f"resource '{entry}' of '{directory}' not found")

    _run_generators(kust, items, files, directory)
    _apply_patches(kust, items, files, directory)
    _apply_replicas(kust, items, directory)
    _apply_names(kust, items)
    if kust.get("namespace"):
        for item in items:
            item.manifest["metadata"]["namespace"] = kust["namespace"]
    _apply_labels(kust, items)
    return items


def render_overlay(files: dict[str, str], overlay: str) -> list[dict]:
    """Render the overlay directory of a virtual file set into manifests."""
    if not overlay or f"{overlay}/{DESCRIPTOR_NAME}" not in files:
        raise CompositionError(f"overlay '{overlay}' not found")
    items = _build(files, posixpath.normpath(overlay), ())
    _apply_hash_suffixes(items)
    logger.debug("rendered overlay %s: %d object(s)", overlay, len(items))
    return [item.manifest for item in items]


class KustomizeBinary:
    """Compositor backed by an external ``kustomize build`` run."""

    def __init__(self, binary: str = "kustomize"):
        self.binary = binary

    def __call__(self, files: dict[str, str], overlay: str) -> list[dict]:
        with tempfile.TemporaryDirectory(prefix="freighter-") as tmp:
            for rel, text in files.items():
                path = os.path.join(tmp, rel)
                os.makedirs(os.path.dirname(path), exist_ok=True)
                with open(path, "w", encoding="utf-8") as f:
                    f.write(text)
            cmd = [self.binary, "build", os.path.join(tmp, overlay)]
            logger.debug("running: %s", " ".join(cmd))
            try:
                result = subprocess.run(cmd, check=True, capture_output=True, text=True)
            except FileNotFoundError as err:
                raise CompositionError(f"'{self.binary}' not found on PATH") from err
            except subprocess.CalledProcessError as err:
                raise CompositionError(
                    f"error running kustomize: {(err.stderr or '').strip()}"
                ) from err
        try:
            docs = list(yaml.safe_load_all(result.stdout))
        except yaml.YAMLError as err:
            raise CompositionError(f"error parsing kustomize output: {err}") from err
        return [doc for doc in docs if isinstance(doc, dict)]
