"""Tests for the advertisement map."""

import pytest

from freighter.pacts.errors import MissingAdvertisementError
from freighter.pacts.types import Ads


class TestAds:
    def test_last_put_wins(self):
        ads = Ads()
        ads.put("k", "v1")
        ads.put("k", "v2")
        assert ads.get("k") == "v2"
        assert len(ads) == 1

    def test_get_absent_is_empty(self):
        assert Ads().get("nope") == ""

    def test_delete(self):
        ads = Ads({"a": "1"})
        ads.delete("a")
        ads.delete("never-there")
        assert "a" not in ads

    def test_contains_all_present(self):
        Ads({"a": "1", "b": "2"}).contains("a", "b")

    def test_contains_names_missing_key(self):
        ads = Ads({"a": "1"})
        with pytest.raises(MissingAdvertisementError) as exc:
            ads.contains("a", "b")
        assert exc.value.missing == ["b"]
        assert "b" in str(exc.value)

    def test_contains_reports_every_missing_key(self):
        with pytest.raises(MissingAdvertisementError) as exc:
            Ads({"dbhost": "h"}).contains("dbhost", "dbport", "dbname", "dbrootpass")
        assert exc.value.missing == ["dbport", "dbname", "dbrootpass"]

    def test_update_and_equality(self):
        ads = Ads({"a": "1"})
        ads.update(Ads({"a": "2", "b": "3"}))
        assert ads == Ads({"a": "2", "b": "3"})
        assert ads.to_dict() == {"a": "2", "b": "3"}

    def test_constructor_copies_input(self):
        data = {"a": "1"}
        ads = Ads(data)
        ads.put("b", "2")
        assert data == {"a": "1"}
