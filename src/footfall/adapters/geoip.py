"""MaxMind GeoIP2/GeoLite2 adapter for IP geolocation."""

import geoip2.database
import geoip2.errors
from maxminddb.errors import InvalidDatabaseError

from footfall.core.errors import ConfigurationError
from footfall.core.models import Location


class MaxMindGeoLookup:
    """GeoLookupPort backed by a local MaxMind City database.

    Example:
        ```python
        geo = MaxMindGeoLookup("/var/lib/GeoIP/GeoLite2-City.mmdb")
        geo.lookup("81.2.69.142")  # Location(country="GB", region="England", ...)
        ```
    """

    def __init__(self, db_path: str) -> None:
        """Open the database.

        Raises:
            ConfigurationError: if the path is empty or the file cannot be
                read as a MaxMind database.
        """
        if not db_path:
            raise ConfigurationError("GeoIP database path is empty")
        try:
            self._reader = geoip2.database.Reader(db_path)
        except (OSError, InvalidDatabaseError, ValueError) as exc:
            raise ConfigurationError(
                f"cannot open GeoIP database {db_path!r}: {exc}"
            ) from exc

    def lookup(self, ip: str) -> Location | None:
        """Return the location of ``ip``, or None if it is unknown or invalid."""
        try:
            response = self._reader.city(ip)
        except (geoip2.errors.AddressNotFoundError, ValueError):
            return None

        region = ""
        if response.subdivisions:
            region = response.subdivisions[0].names.get("en", "")

        return Location(
            country=response.country.iso_code or "",
            region=region,
            city=response.city.names.get("en", ""),
        )

    def close(self) -> None:
        self._reader.close()
