"""
Normalizer tests – both upstream price shapes, tolerant field handling,
drug record extraction and name suggestions.
"""

import json

import pytest

from conftest import FLAT_PRICES, NESTED_PRICES
from rxcompare.errors import SchemaError
from rxcompare.services.upstream.normalizer import (
    extract_drug_name,
    extract_gsn,
    normalize,
    normalize_drug_record,
    normalize_name_suggestions,
    parse_json,
    to_float,
)


def _comparable(offers):
    return [(o.pharmacy_name, o.price, o.distance_miles, o.address, o.city, o.state,
             o.postal_code, o.open_24h) for o in offers]


class TestShapes:
    def test_flat_and_nested_normalize_identically(self):
        flat = normalize(json.dumps(FLAT_PRICES), "price-by-name")
        nested = normalize(json.dumps(NESTED_PRICES), "price-by-gsn")
        assert _comparable(flat) == _comparable(nested)
        assert [o.pharmacy_name for o in flat] == ["Walgreens", "CVS Pharmacy", "H-E-B Pharmacy"]

    def test_bare_list_and_data_wrapper(self):
        records = FLAT_PRICES["pharmacies"]
        assert len(normalize(records, "x")) == 3
        assert len(normalize({"data": {"pharmacies": records}}, "x")) == 3

    def test_coerces_strings(self):
        offers = normalize(FLAT_PRICES, "x")
        cvs = offers[1]
        assert cvs.price == 12.99
        assert cvs.distance_miles == 1.2
        assert cvs.open_24h is True
        assert cvs.data_source == "upstream"

    def test_unknown_shape_yields_nothing(self):
        assert normalize({"message": "ok"}, "x") == []


class TestRecordFiltering:
    def test_drops_records_without_name_or_valid_price(self):
        payload = {"pharmacies": [
            {"name": "", "price": 10},
            {"name": "No Price"},
            {"name": "Negative", "price": -1},
            {"name": "Garbage", "price": "call for price"},
            {"name": "Free", "price": 0},
        ]}
        offers = normalize(payload, "x")
        assert [o.pharmacy_name for o in offers] == ["Free"]

    def test_distance_from_coordinates(self):
        payload = {"pharmacies": [{"name": "Nearby", "price": 5, "latitude": 30.5, "longitude": -97.7527}]}
        offer = normalize(payload, "x", origin=(30.4015, -97.7527))[0]
        assert offer.distance_miles == pytest.approx(6.8, abs=0.1)

    def test_unknown_distance_is_zero(self):
        offer = normalize({"pharmacies": [{"name": "Somewhere", "price": 5}]}, "x")[0]
        assert offer.distance_miles == 0.0

    def test_price_rounded_to_cents(self):
        offer = normalize({"pharmacies": [{"name": "A", "price": 12.345678}]}, "x")[0]
        assert offer.price == 12.35


class TestParseJson:
    @pytest.mark.parametrize("raw", ["", "   ", None, "<html>", "{broken"])
    def test_unparseable_raises_schema_error(self, raw):
        with pytest.raises(SchemaError):
            parse_json(raw)

    def test_bytes_decoded(self):
        assert parse_json(b'{"a": 1}') == {"a": 1}

    @pytest.mark.parametrize("value, expected", [
        ("$1,299.50", 1299.50),
        ("3.4 mi", 3.4),
        (7, 7.0),
        ("nan", None),
        (True, None),
        ("n/a", None),
        (".5 miles", 0.5),
        ("$.99", 0.99),
        ("-2", -2.0),
        (10 ** 400, None),
        ("9" * 400, None),
    ])
    def test_to_float(self, value, expected):
        assert to_float(value) == expected


class TestDrugRecord:
    def test_extracts_variants_and_selection(self):
        record = normalize_drug_record(NESTED_PRICES)
        assert record.brand_name == "Lipitor"
        assert record.generic_name == "Atorvastatin"
        assert record.gsn == 62733
        assert record.selected_form.label == "Tablet"
        assert record.selected_strength.label == "10 mg"
        assert record.strengths[1].gsn == 62734
        assert record.selected_quantity.label == "30"

    def test_flat_payload_has_no_record(self):
        assert normalize_drug_record(FLAT_PRICES) is None

    def test_only_one_selected(self):
        payload = {"drug": {"brandName": "X", "forms": [
            {"form": "Tablet", "selected": True}, {"form": "Capsule", "selected": True}]}}
        record = normalize_drug_record(payload)
        assert [f.selected for f in record.forms] == [True, False]


class TestLookups:
    @pytest.mark.parametrize("payload, expected", [
        ({"gsn": 62733}, 62733),
        ({"gsn": "62733"}, 62733),
        ({"drugInfo": {"gsn": 62733}}, 62733),
        ([{"gsn": 62733}], 62733),
        (["LIPITOR (GSN: 62733)"], 62733),
        ({"gsn": 0}, None),
        ({}, None),
    ])
    def test_extract_gsn(self, payload, expected):
        assert extract_gsn(json.dumps(payload)) == expected

    def test_extract_drug_name(self):
        assert extract_drug_name({"drugInfo": {"brandName": "Lipitor"}}) == "Lipitor"
        assert extract_drug_name({"drugName": "Lipitor"}) == "Lipitor"
        assert extract_drug_name([]) is None


class TestNameSuggestions:
    def test_labels_are_cleaned(self):
        raw = ["LIPITOR (GSN: 62733)", "lipitor (gsn: 62733)", "LIPOFEN"]
        assert normalize_name_suggestions(raw) == [
            {"drugName": "Lipitor", "gsn": 62733},
            {"drugName": "Lipofen", "gsn": None},
        ]

    def test_object_results(self):
        raw = {"drugs": [{"drugName": "ATORVASTATIN CALCIUM", "gsn": 62733}, {"label": "Lipitor"}]}
        assert normalize_name_suggestions(raw) == [
            {"drugName": "Atorvastatin Calcium", "gsn": 62733},
            {"drugName": "Lipitor", "gsn": None},
        ]
