"""PostgreSQL database component."""

from freighter.components.base import Component
from freighter.core.credentials import ensure_credentials
from freighter.pacts.types import Ads

DB_PORT = "5432"
DB_USER = "user"
DB_NAME = "database"
DB_ROOT_USER = "postgres"


class Postgres(Component):
    """A postgres deployment with a default user and database.

    Passwords are generated on first Apply and kept in a credential record
    (``<prefix>-pgsql-access-data``) so later overlays reuse them. A second
    copy is rendered into the ``postgres-config-secret`` the pod reads.
    Advertises both the default user and the admin user.
    """
    name = "postgres"
    workload = "database"

    def credentials(self) -> dict[str, str]:
        """Return pass/rootpass, generating and storing them on first use."""
        return ensure_credentials(self.store, self.namespace,
                                  self.prefixed("pgsql-access-data"),
                                  owner_ref=self.owner_ref)

    def mutate_descriptor(self, kust: dict, ads: Ads, overlay: str) -> None:
        creds = self.credentials()
        super().mutate_descriptor(kust, ads, overlay)
        kust["secretGenerator"] = [{
            "name": "postgres-config-secret",
            "literals": [
                f"database-username={DB_USER}",
                f"database-name={DB_NAME}",
                f"database-password={creds['pass']}",
                f"database-root-password={creds['rootpass']}",
            ],
        }]

    def advertised(self) -> Ads:
        creds = self.credentials()
        ads = Ads()
        ads.put("dbhost", f"{self.prefixed('database')}.{self.namespace}.svc")
        ads.put("dbport", DB_PORT)
        ads.put("dbuser", DB_USER)
        ads.put("dbpass", creds["pass"])
        ads.put("dbname", DB_NAME)
        ads.put("dbrootuser", DB_ROOT_USER)
        ads.put("dbrootpass", creds["rootpass"])
        return ads
