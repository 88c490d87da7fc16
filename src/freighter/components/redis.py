"""Redis cache component."""

from freighter.components.base import Component
from freighter.pacts.types import Ads

REDIS_PORT = "6379"


class Redis(Component):
    """A single redis server. Advertises its service address and port."""
    name = "redis"
    workload = "redis"

    def advertised(self) -> Ads:
        ads = Ads()
        ads.put("address", f"{self.prefixed('redis')}.{self.namespace}.svc")
        ads.put("port", REDIS_PORT)
        return ads
