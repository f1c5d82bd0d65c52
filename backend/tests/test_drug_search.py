"""
Drug search tests – upstream autocomplete, catalogue fallback and GSN lookup.
"""

import pytest

from conftest import FakeResponse
from rxcompare.errors import ValidationError


@pytest.fixture
def search(services):
    return services["search"]


class TestAutocomplete:
    def test_short_prefix_returns_nothing(self, search, fake_session):
        assert search.autocomplete("li") == {"suggestions": [], "isMockData": False}
        assert fake_session.calls == []

    def test_prefix_endpoint(self, search, fake_session):
        fake_session.add("GET", "/drugs/lip", FakeResponse(200, ["LIPITOR (GSN: 62733)", "LIPOFEN"]))
        result = search.autocomplete("Lip")
        assert result["isMockData"] is False
        assert result["suggestions"] == [
            {"drugName": "Lipitor", "gsn": 62733},
            {"drugName": "Lipofen", "gsn": None},
        ]
        assert fake_session.count("POST", "/drugs/names") == 0

    def test_falls_back_to_names_list(self, search, fake_session):
        fake_session.add("POST", "/drugs/names", FakeResponse(200, [{"drugName": "ZESTRIL"}]))
        result = search.autocomplete("zes")
        # gsn filled in from the catalogue
        assert result["suggestions"] == [{"drugName": "Zestril", "gsn": 19675}]
        assert fake_session.count("GET", "/drugs/zes") == 1

    def test_catalogue_when_upstream_has_nothing(self, search):
        result = search.autocomplete("atorva")
        assert result["isMockData"] is True
        assert result["suggestions"][0] == {"drugName": "Atorvastatin", "gsn": 62733}

    def test_count_is_respected(self, search, fake_session):
        fake_session.add("GET", "/drugs/met", FakeResponse(200, [f"METDRUG{i}" for i in range(8)]))
        assert len(search.autocomplete("met", count=3)["suggestions"]) == 3


class TestFindGsn:
    def test_upstream_lookup(self, search, fake_session):
        fake_session.add("GET", "/druginfo/lipitor", FakeResponse(200, {"gsn": 62733}))
        assert search.find_gsn("Lipitor") == {"drugName": "lipitor", "gsn": 62733, "isMockData": False}

    def test_catalogue_fallback(self, search):
        assert search.find_gsn("crestor") == {"drugName": "Crestor", "gsn": 75940, "isMockData": True}

    def test_unknown_drug(self, search):
        assert search.find_gsn("zzzzzz") is None

    def test_blank_name(self, search):
        with pytest.raises(ValidationError):
            search.find_gsn("   ")
