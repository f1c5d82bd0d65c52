"""
Response normalizer – maps the upstream's heterogeneous JSON into
PharmacyOffer / DrugRecord objects.

Known price-list shapes:
  flat:    {"pharmacies": [{"name", "price", "distance", "address", ...}]}
  nested:  {"pharmacyPrices": [{"pharmacy": {...}, "price": {"price", "ucPrice", ...}}]}
A bare JSON array of either record style is accepted too.

Only unparseable JSON raises SchemaError. Missing fields are tolerated;
records without a name or a non-negative price are dropped.
"""

import json
import logging
import math
import re
from typing import Any, Optional

from rxcompare.errors import SchemaError
from rxcompare.models.models import DATA_SOURCE_UPSTREAM, DrugRecord, DrugVariant, PharmacyOffer
from rxcompare.services.geocoder import haversine_miles

logger = logging.getLogger("rxcompare.normalizer")

_NUMBER_RE = re.compile(r"-?(?:\d+(?:\.\d+)?|\.\d+)")
_GSN_LABEL_RE = re.compile(r"\(\s*GSN:\s*(\d+)\s*\)", re.IGNORECASE)
_TRUE_STRINGS = {"true", "yes", "y", "1", "t"}

_LIST_KEYS_NESTED = ("pharmacyPrices",)
_LIST_KEYS_FLAT = ("pharmacies",)


# ── Parsing helpers ─────────────────────────────────────────────────

def parse_json(raw: Any) -> Any:
    """Decode a raw body; already-decoded dicts/lists pass through."""
    if isinstance(raw, (dict, list)):
        return raw
    if isinstance(raw, bytes):
        raw = raw.decode("utf-8", errors="replace")
    if raw is None or not str(raw).strip():
        raise SchemaError("Upstream returned an empty body")
    try:
        return json.loads(raw)
    except (json.JSONDecodeError, TypeError) as exc:
        raise SchemaError(f"Upstream body is not valid JSON: {exc}") from exc


def _first(record: dict, *keys: str) -> Any:
    for key in keys:
        value = record.get(key)
        if value is not None and value != "":
            return value
    return None


def to_float(value: Any) -> Optional[float]:
    """Coerce 12.99, "12.99", "$12.99" or "1.2 miles" to a float."""
    if value is None or isinstance(value, bool):
        return None
    try:
        if isinstance(value, (int, float)):
            result = float(value)
        else:
            match = _NUMBER_RE.search(str(value).replace(",", ""))
            if not match:
                return None
            result = float(match.group(0))
    except OverflowError:
        return None
    return None if math.isnan(result) or math.isinf(result) else result


def _to_bool(value: Any) -> bool:
    if isinstance(value, bool):
        return value
    if isinstance(value, (int, float)):
        return value != 0
    if isinstance(value, str):
        return value.strip().lower() in _TRUE_STRINGS
    return False


def _to_int(value: Any) -> Optional[int]:
    number = to_float(value)
    if number is None or number <= 0:
        return None
    return int(number)


def _text(value: Any) -> str:
    return str(value).strip() if value is not None else ""


# ── Price lists ─────────────────────────────────────────────────────

def _flatten_nested(entry: dict) -> dict:
    """Collapse {"pharmacy": {...}, "price": {...}} into one flat record."""
    pharmacy = entry.get("pharmacy") if isinstance(entry.get("pharmacy"), dict) else {}
    merged = dict(pharmacy)
    price = entry.get("price")
    if isinstance(price, dict):
        merged["price"] = _first(price, "price", "discountPrice", "ucPrice")
    elif price is not None:
        merged["price"] = price
    for key in ("distance", "latitude", "longitude"):
        if merged.get(key) is None and entry.get(key) is not None:
            merged[key] = entry[key]
    return merged


def _extract_records(payload: Any) -> list[dict]:
    if isinstance(payload, list):
        items = payload
    elif isinstance(payload, dict):
        items = None
        for key in _LIST_KEYS_NESTED + _LIST_KEYS_FLAT:
            if isinstance(payload.get(key), list):
                items = payload[key]
                break
        if items is None and isinstance(payload.get("data"), (dict, list)):
            return _extract_records(payload["data"])
        if items is None:
            return []
    else:
        return []

    records = []
    for item in items:
        if not isinstance(item, dict):
            continue
        records.append(_flatten_nested(item) if isinstance(item.get("pharmacy"), dict) else item)
    return records


def _offer_from_record(record: dict, origin: Optional[tuple[float, float]]) -> Optional[PharmacyOffer]:
    name = _text(_first(record, "name", "pharmacyName"))
    raw_price = _first(record, "price", "discountPrice", "ucPrice")
    if isinstance(raw_price, dict):
        raw_price = _first(raw_price, "price", "discountPrice", "ucPrice")
    price = to_float(raw_price)
    if not name or price is None or price < 0:
        return None

    latitude = to_float(_first(record, "latitude", "lat"))
    longitude = to_float(_first(record, "longitude", "lng", "long"))
    distance = to_float(_first(record, "distance", "distanceMiles"))
    if distance is None or distance < 0:
        if origin and latitude is not None and longitude is not None:
            distance = haversine_miles(origin[0], origin[1], latitude, longitude)
        else:
            distance = 0.0

    return PharmacyOffer(
        pharmacy_name=name,
        price=round(price, 2),
        distance_miles=distance,
        address=_text(_first(record, "address", "streetAddress", "address1")),
        city=_text(record.get("city")),
        state=_text(record.get("state")),
        postal_code=_text(_first(record, "zipCode", "zip", "postalCode")),
        phone=_text(_first(record, "phone", "phoneNumber")),
        latitude=latitude,
        longitude=longitude,
        open_24h=_to_bool(_first(record, "open24H", "open24Hours", "is24Hours")),
        drive_up_window=_to_bool(_first(record, "driveUpWindow", "driveThru")),
        handicap_access=_to_bool(_first(record, "handicapAccess", "handicapAccessible")),
        data_source=DATA_SOURCE_UPSTREAM,
    )


def normalize(raw_payload: Any, source_endpoint: str,
              origin: Optional[tuple[float, float]] = None) -> list[PharmacyOffer]:
    """
    Normalize one upstream price payload into offers (upstream order kept).

    origin, when given, is used to compute distance for records that carry
    coordinates but no distance.
    """
    payload = parse_json(raw_payload)
    records = _extract_records(payload)

    offers = []
    dropped = 0
    for record in records:
        offer = _offer_from_record(record, origin)
        if offer is None:
            dropped += 1
            continue
        offers.append(offer)

    if dropped:
        logger.info("%s: dropped %d record(s) without a name or valid price", source_endpoint, dropped)
    logger.debug("%s: normalized %d offer(s)", source_endpoint, len(offers))
    return offers


# ── Drug records & lookups ──────────────────────────────────────────

def _variants(raw: Any, *label_keys: str) -> list[DrugVariant]:
    if not isinstance(raw, list):
        return []
    variants = []
    for entry in raw:
        if isinstance(entry, dict):
            label = _text(_first(entry, *label_keys, "name", "label", "value", "description"))
            if not label:
                continue
            variants.append(DrugVariant(
                label=label,
                gsn=_to_int(_first(entry, "gsn", "GSN")),
                selected=_to_bool(_first(entry, "selected", "isSelected")),
            ))
        elif entry is not None and _text(entry):
            variants.append(DrugVariant(label=_text(entry)))
    return variants


def normalize_drug_record(raw_payload: Any) -> Optional[DrugRecord]:
    """Extract drug details from a price payload, if it carries any."""
    payload = parse_json(raw_payload)
    if not isinstance(payload, dict):
        return None
    info = payload.get("drugInfo") or payload.get("drug")
    if not isinstance(info, dict):
        if not any(k in payload for k in ("brandName", "genericName")):
            return None
        info = payload

    brand = _text(_first(info, "brandName", "drugName", "name"))
    generic = _text(_first(info, "genericName")) or brand
    if not brand and not generic:
        return None

    return DrugRecord(
        brand_name=brand or generic,
        generic_name=generic,
        gsn=_to_int(_first(info, "gsn", "GSN")) or _to_int(payload.get("gsn")),
        forms=_variants(info.get("forms"), "form"),
        strengths=_variants(info.get("strengths"), "strength"),
        quantities=_variants(info.get("quantities"), "quantity"),
    )


def extract_gsn(raw_payload: Any) -> Optional[int]:
    """GSN from a GSN-by-name lookup: {gsn}, {drugInfo: {gsn}} or [{gsn}, ...]."""
    payload = parse_json(raw_payload)
    if isinstance(payload, list):
        for item in payload:
            if isinstance(item, dict):
                gsn = _to_int(_first(item, "gsn", "GSN"))
                if gsn:
                    return gsn
            elif isinstance(item, str):
                match = _GSN_LABEL_RE.search(item)
                if match:
                    return int(match.group(1))
        return None
    if isinstance(payload, dict):
        gsn = _to_int(_first(payload, "gsn", "GSN"))
        if gsn:
            return gsn
        info = payload.get("drugInfo")
        if isinstance(info, dict):
            return _to_int(_first(info, "gsn", "GSN"))
    return None


def extract_drug_name(raw_payload: Any) -> Optional[str]:
    """Drug name from a name-by-GSN lookup."""
    payload = parse_json(raw_payload)
    if not isinstance(payload, dict):
        return None
    for source in (payload.get("drugInfo"), payload):
        if isinstance(source, dict):
            name = _text(_first(source, "drugName", "brandName", "genericName", "name"))
            if name:
                return name
    return None


def normalize_name_suggestions(raw_payload: Any) -> list[dict]:
    """
    Name-prefix results: strings ("LIPITOR (GSN: 62733)") or objects with
    label/value or drugName/gsn. Returns [{"drugName", "gsn"}] in upstream order,
    de-duplicated case-insensitively.
    """
    payload = parse_json(raw_payload)
    if isinstance(payload, dict):
        for key in ("results", "drugs", "names", "data"):
            if isinstance(payload.get(key), list):
                payload = payload[key]
                break
    if not isinstance(payload, list):
        return []

    suggestions = []
    seen = set()
    for item in payload:
        gsn = None
        if isinstance(item, str):
            label = item
        elif isinstance(item, dict):
            label = _text(_first(item, "drugName", "label", "name", "value"))
            gsn = _to_int(_first(item, "gsn", "GSN"))
        else:
            continue
        match = _GSN_LABEL_RE.search(label)
        if match:
            gsn = gsn or int(match.group(1))
            label = _GSN_LABEL_RE.sub("", label)
        label = " ".join(label.split()).title()
        if not label or label.lower() in seen:
            continue
        seen.add(label.lower())
        suggestions.append({"drugName": label, "gsn": gsn})
    return suggestions
