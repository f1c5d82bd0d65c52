"""
Data model unit tests.
Validates query/location validation, offer serialization and
drug record selection rules.
"""

from dataclasses import FrozenInstanceError

import pytest

from rxcompare.errors import ValidationError
from rxcompare.models.models import (
    AuthToken,
    DrugQuery,
    DrugRecord,
    DrugVariant,
    Location,
    PharmacyOffer,
    ResolutionResult,
    normalize_drug_name,
)


# ═══════════════════════════════════════════
# DrugQuery
# ═══════════════════════════════════════════

class TestDrugQuery:
    def test_by_name_normalizes(self):
        q = DrugQuery.by_name("  Lipitor   10mg ")
        assert q.name == "lipitor 10mg"
        assert q.gsn is None
        assert q.key == "name:lipitor 10mg"

    def test_by_gsn_coerces(self):
        q = DrugQuery.by_gsn("62733")
        assert q.gsn == 62733
        assert q.key == "gsn:62733"

    def test_by_gsn_rejects_text(self):
        with pytest.raises(ValidationError):
            DrugQuery.by_gsn("lipitor")

    @pytest.mark.parametrize("query", [
        DrugQuery(),
        DrugQuery.by_name("   "),
        DrugQuery(name="lipitor", gsn=62733),
        DrugQuery(gsn=0),
        DrugQuery(gsn=True),
    ])
    def test_invalid(self, query):
        with pytest.raises(ValidationError):
            query.validate()

    def test_frozen(self):
        with pytest.raises(FrozenInstanceError):
            DrugQuery.by_name("x").name = "y"

    def test_normalize_drug_name(self):
        assert normalize_drug_name("\tAtorvastatin\nCalcium ") == "atorvastatin calcium"
        assert normalize_drug_name(None) == ""


# ═══════════════════════════════════════════
# Location
# ═══════════════════════════════════════════

class TestLocation:
    def test_valid(self):
        Location(latitude=30.4, longitude=-97.7, radius_miles=0.5).validate()

    @pytest.mark.parametrize("kwargs", [
        {"latitude": 30.4, "longitude": -97.7, "radius_miles": 0},
        {"latitude": 30.4, "longitude": -97.7, "radius_miles": -3},
        {"latitude": 30.4, "longitude": -97.7, "radius_miles": float("nan")},
        {"latitude": 30.4, "longitude": -97.7, "radius_miles": float("inf")},
        {"latitude": 95.0, "longitude": -97.7, "radius_miles": 5},
        {"latitude": 30.4, "longitude": -181.0, "radius_miles": 5},
    ])
    def test_invalid(self, kwargs):
        with pytest.raises(ValidationError):
            Location(**kwargs).validate()


# ═══════════════════════════════════════════
# Offers & results
# ═══════════════════════════════════════════

class TestPharmacyOffer:
    def test_to_dict_uses_api_names(self):
        offer = PharmacyOffer("CVS Pharmacy", 12.99, 1.2, address="1 Main St", open_24h=True)
        data = offer.to_dict()
        assert data["pharmacyName"] == "CVS Pharmacy"
        assert data["price"] == 12.99
        assert data["distanceMiles"] == 1.2
        assert data["open24H"] is True
        assert data["dataSource"] == "upstream"

    def test_sort_key(self):
        assert PharmacyOffer("A", 5.0, 2.0).sort_key == (5.0, 2.0)


class TestResolutionResult:
    def test_to_dict(self):
        result = ResolutionResult(
            offers=[PharmacyOffer("A", 5.0)],
            used_mock_data=True,
            warnings=["estimated"],
        )
        data = result.to_dict()
        assert data["usedMockData"] is True
        assert data["drug"] is None
        assert data["warnings"] == ["estimated"]
        assert data["offers"][0]["pharmacyName"] == "A"


# ═══════════════════════════════════════════
# DrugRecord
# ═══════════════════════════════════════════

class TestDrugRecord:
    def test_first_is_default_when_nothing_selected(self):
        record = DrugRecord("Lipitor", "Atorvastatin", strengths=[DrugVariant("10 mg"), DrugVariant("20 mg")])
        assert record.selected_strength.label == "10 mg"
        assert record.selected_form is None

    def test_at_most_one_selected(self):
        record = DrugRecord("Lipitor", "Atorvastatin", quantities=[
            DrugVariant("30"), DrugVariant("60", selected=True), DrugVariant("90", selected=True),
        ])
        assert [q.selected for q in record.quantities] == [False, True, False]
        assert record.selected_quantity.label == "60"

    def test_to_dict(self):
        record = DrugRecord("Lipitor", "Atorvastatin", gsn=62733, forms=[DrugVariant("Tablet", selected=True)])
        data = record.to_dict()
        assert data["brandName"] == "Lipitor"
        assert data["forms"] == [{"label": "Tablet", "gsn": None, "selected": True}]


class TestAuthToken:
    def test_freshness_margin(self):
        token = AuthToken("t", expires_at=1000.0)
        assert token.is_fresh(now=600.0, safety_margin=300)
        assert not token.is_fresh(now=700.0, safety_margin=300)

    def test_iso_expiry(self):
        assert AuthToken("t", expires_at=0).expires_at_iso.startswith("1970-01-01T00:00:00")
