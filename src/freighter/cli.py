"""freighter — deploy a chain of components onto a cluster and wire them together."""

import argparse
import logging
import os
import sys

import yaml
from kubernetes.config import ConfigException

from freighter.components.clair import Clair
from freighter.components.postgres import Postgres
from freighter.components.redis import Redis
from freighter.core.compose import KustomizeBinary, render_overlay
from freighter.core.driver import deploy_chain, ensure_owner
from freighter.core.store import KubeStore
from freighter.pacts.errors import FreighterError
from freighter.pacts.types import SCALE_DOWN_OVERLAY

# Component name → class, in the order they are usually deployed
COMPONENTS = {
    "redis": Redis,
    "postgres": Postgres,
    "clair": Clair,
}


# ---------------------------------------------------------------------------
# Config
# ---------------------------------------------------------------------------

def load_config(path: str) -> dict:
    """Load freighter.yaml or return an all-defaults config."""
    if os.path.exists(path):
        with open(path) as f:
            cfg = yaml.safe_load(f) or {}
    else:
        cfg = {}
    cfg.setdefault("namespace", "default")
    cfg.setdefault("namePrefix", "freighter")
    cfg.setdefault("overlay", "base")
    cfg.setdefault("pollInterval", 1)
    cfg.setdefault("timeout", None)
    cfg.setdefault("components", ["postgres", "clair"])
    cfg.setdefault("owner", None)
    for key in ("pollInterval", "timeout"):
        if key == "timeout" and cfg[key] is None:
            continue
        try:
            cfg[key] = float(cfg[key])
        except (TypeError, ValueError):
            msg = f"{path}: {key} must be a number of seconds, got {cfg[key]!r}"
            raise SystemExit(msg) from None
    return cfg


def _apply_args(cfg: dict, args: argparse.Namespace) -> dict:
    """Let command-line flags override config file values."""
    if args.namespace:
        cfg["namespace"] = args.namespace
    if args.name_prefix:
        cfg["namePrefix"] = args.name_prefix
    if args.overlay:
        cfg["overlay"] = args.overlay
    if args.component:
        cfg["components"] = args.component
    if args.timeout is not None:
        cfg["timeout"] = args.timeout
    unknown = [c for c in cfg["components"] if c not in COMPONENTS]
    if unknown:
        raise SystemExit(f"unknown component(s): {', '.join(unknown)}")
    return cfg


def build_components(cfg: dict, store, owner_ref: dict | None, compositor) -> list:
    """Instantiate the configured components, in order."""
    return [
        COMPONENTS[name](store, namespace=cfg["namespace"], name_prefix=cfg["namePrefix"],
                         owner_ref=owner_ref, compositor=compositor)
        for name in cfg["components"]
    ]


# ---------------------------------------------------------------------------
# CLI
# ---------------------------------------------------------------------------

def main():
    """CLI entry point."""
    parser = argparse.ArgumentParser(
        description="Deploy components in order, feeding each one's advertisements to the next"
    )
    parser.add_argument(
        "--config", default="freighter.yaml",
        help="Configuration file (default: freighter.yaml)",
    )
    parser.add_argument("--namespace", help="Namespace to deploy into")
    parser.add_argument("--name-prefix", help="Prefix for every created object name")
    parser.add_argument("--overlay", help="Overlay to apply to every component (e.g. base, scale-down)")
    parser.add_argument(
        "--component", action="append", choices=sorted(COMPONENTS),
        help="Component to deploy; repeat to deploy several in order",
    )
    parser.add_argument(
        "--kustomize", action="store_true",
        help="Render with the kustomize binary instead of the built-in compositor",
    )
    parser.add_argument("--timeout", type=float, help="Seconds to wait for each component")
    parser.add_argument("-v", "--verbose", action="store_true", help="Debug logging")
    args = parser.parse_args()

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
        stream=sys.stderr,
    )

    cfg = _apply_args(load_config(args.config), args)
    compositor = KustomizeBinary() if args.kustomize else render_overlay

    try:
        store = KubeStore()
        owner_ref = None
        if cfg["owner"]:
            owner_ref = ensure_owner(store, cfg["namespace"], cfg["owner"])
        ctrls = build_components(cfg, store, owner_ref, compositor)
        if cfg["overlay"] == SCALE_DOWN_OVERLAY:
            # dependents go down before what they depend on
            ctrls.reverse()
        print(f"Deploying {', '.join(cfg['components'])} to {cfg['namespace']} "
              f"(overlay {cfg['overlay']})", file=sys.stderr)
        ads = deploy_chain(ctrls, cfg["overlay"], interval=cfg["pollInterval"],
                           timeout=cfg["timeout"])
    except (FreighterError, ConfigException) as err:
        print(f"error: {err}", file=sys.stderr)
        sys.exit(1)

    print(f"Done. Advertised keys: {', '.join(sorted(ads)) or '(none)'}", file=sys.stderr)


if __name__ == "__main__":
    main()
