"""Tests for the MaxMind geo lookup adapter."""

from pathlib import Path
from types import SimpleNamespace
from unittest.mock import MagicMock, patch

import geoip2.errors
import pytest

from footfall.adapters.geoip import MaxMindGeoLookup
from footfall.core.errors import ConfigurationError
from footfall.core.models import Location
from footfall.core.ports import GeoLookupPort

pytestmark = pytest.mark.tier(1)


def _city_response(country: str, region: str | None, city: str) -> SimpleNamespace:
    subdivisions = [SimpleNamespace(names={"en": region})] if region else []
    return SimpleNamespace(
        country=SimpleNamespace(iso_code=country),
        subdivisions=subdivisions,
        city=SimpleNamespace(names={"en": city} if city else {}),
    )


@pytest.fixture
def reader() -> MagicMock:
    with patch("geoip2.database.Reader") as reader_cls:
        yield reader_cls.return_value


class TestMaxMindGeoLookup:
    """Tests for MaxMindGeoLookup."""

    def test_empty_path_is_rejected(self) -> None:
        with pytest.raises(ConfigurationError):
            MaxMindGeoLookup("")

    def test_missing_file_is_rejected(self, tmp_path: Path) -> None:
        with pytest.raises(ConfigurationError, match="cannot open GeoIP database"):
            MaxMindGeoLookup(str(tmp_path / "missing.mmdb"))

    def test_implements_geo_lookup_port(self, reader) -> None:
        assert isinstance(MaxMindGeoLookup("city.mmdb"), GeoLookupPort)

    def test_lookup_returns_location(self, reader) -> None:
        reader.city.return_value = _city_response("CH", "Zurich", "Winterthur")

        location = MaxMindGeoLookup("city.mmdb").lookup("81.2.69.142")

        assert location == Location(country="CH", region="Zurich", city="Winterthur")
        reader.city.assert_called_once_with("81.2.69.142")

    def test_lookup_without_region_or_city(self, reader) -> None:
        reader.city.return_value = _city_response("SG", None, "")

        location = MaxMindGeoLookup("city.mmdb").lookup("1.2.3.4")

        assert location == Location(country="SG")

    def test_unknown_address_returns_none(self, reader) -> None:
        reader.city.side_effect = geoip2.errors.AddressNotFoundError("not found")

        assert MaxMindGeoLookup("city.mmdb").lookup("10.0.0.1") is None

    def test_invalid_address_returns_none(self, reader) -> None:
        reader.city.side_effect = ValueError("not an IP address")

        assert MaxMindGeoLookup("city.mmdb").lookup("not-an-ip") is None

    def test_close_closes_reader(self, reader) -> None:
        MaxMindGeoLookup("city.mmdb").close()

        reader.close.assert_called_once_with()
