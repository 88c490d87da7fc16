"""Clair vulnerability scanner component."""

from pathlib import Path

import yaml

from freighter.components.base import Component
from freighter.pacts.errors import MutationError
from freighter.pacts.types import SCALE_DOWN_OVERLAY, Ads

DEFAULT_CONFIG = Path(__file__).parent / "static" / "default-clair-config.yaml"

# Keys Clair needs from its database. Uses the admin user for now.
REQUIRED_ADS = ("dbhost", "dbport", "dbname", "dbrootuser", "dbrootpass")


def default_config() -> dict:
    """Parse the bundled default configuration."""
    try:
        with open(DEFAULT_CONFIG, encoding="utf-8") as f:
            config = yaml.safe_load(f)
    except (OSError, yaml.YAMLError) as err:
        raise MutationError(f"unable to process default config: {err}") from err
    if not isinstance(config, dict):
        raise MutationError(f"default config {DEFAULT_CONFIG} is not a mapping")
    return config


def connection_string(ads: Ads) -> str:
    """Build a libpq connection string from advertised database data."""
    ads.contains(*REQUIRED_ADS)
    return (
        f"host={ads.get('dbhost')} port={ads.get('dbport')} dbname={ads.get('dbname')} "
        f"user={ads.get('dbrootuser')} password={ads.get('dbrootpass')} sslmode=disable"
    )


def build_config(ads: Ads) -> dict:
    """Return a combo-mode config with every agent pointed at the advertised database."""
    connstr = connection_string(ads)
    config = default_config()
    for agent in ("indexer", "matcher", "notifier"):
        config.setdefault(agent, {})["connstring"] = connstr
    return config


class Clair(Component):
    """Clair in combo mode. Its config is rendered into the ``clair-config`` secret."""
    name = "clair"
    workload = "clair"
    require_updated = True

    def mutate_descriptor(self, kust: dict, ads: Ads, overlay: str) -> None:
        super().mutate_descriptor(kust, ads, overlay)
        if overlay == SCALE_DOWN_OVERLAY and not any(k in ads for k in REQUIRED_ADS):
            # database already gone; no pod reads the config at zero replicas
            config = default_config()
        else:
            config = build_config(ads)
        config = yaml.safe_dump(config, default_flow_style=False, sort_keys=False)
        kust["secretGenerator"] = [{
            "name": "clair-config",
            "literals": [f"config.yaml={config}"],
        }]

    def advertised(self) -> Ads:
        ads = Ads()
        ads.put("clair-addr", f"{self.prefixed('clair')}.{self.namespace}")
        return ads
