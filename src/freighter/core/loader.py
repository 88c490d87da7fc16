"""Manifest tree loading — a base + overlays directory as a virtual file set."""

from pathlib import Path

import yaml

from freighter.pacts.errors import TemplateLoadError

# Location of the base composition descriptor inside every manifest tree.
# Template-level mutators only ever see this file.
BASE_DESCRIPTOR = "base/kustomization.yaml"


def load_tree(root: str | Path) -> dict[str, str]:
    """Read every file under root into {relative posix path: text}."""
    root = Path(root)
    if not root.is_dir():
        raise TemplateLoadError(f"manifest tree '{root}' is not a directory")
    files: dict[str, str] = {}
    for path in sorted(root.rglob("*")):
        if not path.is_file():
            continue
        try:
            files[path.relative_to(root).as_posix()] = path.read_text(encoding="utf-8")
        except (OSError, UnicodeDecodeError) as err:
            raise TemplateLoadError(f"unable to read '{path}': {err}") from err
    if BASE_DESCRIPTOR not in files:
        raise TemplateLoadError(f"manifest tree '{root}' has no {BASE_DESCRIPTOR}")
    return files


def read_descriptor(files: dict[str, str], path: str = BASE_DESCRIPTOR) -> dict:
    """Parse a composition descriptor out of the virtual file set."""
    try:
        kust = yaml.safe_load(files[path])
    except KeyError as err:
        raise TemplateLoadError(f"descriptor '{path}' not found") from err
    except yaml.YAMLError as err:
        raise TemplateLoadError(f"error parsing descriptor '{path}': {err}") from err
    if kust is None:
        return {}
    if not isinstance(kust, dict):
        raise TemplateLoadError(f"descriptor '{path}' is not a mapping")
    return kust


def write_descriptor(files: dict[str, str], kust: dict, path: str = BASE_DESCRIPTOR) -> None:
    """Encode a descriptor back into the virtual file set at path."""
    files[path] = yaml.safe_dump(kust, default_flow_style=False, sort_keys=False)
