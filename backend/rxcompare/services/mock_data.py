"""
Synthetic pricing data – the last resort when the upstream is unusable.

Offers are randomised but seeded from the query and location, so the same
search always yields the same mock list. Every offer is tagged
data_source="mock". The built-in drug catalogue also backs GSN lookups and
autocomplete when the upstream cannot answer them.
"""

import hashlib
import logging
import math
import random
from typing import Optional

from rxcompare.models.models import (
    DATA_SOURCE_MOCK,
    DrugQuery,
    DrugRecord,
    DrugVariant,
    Location,
    PharmacyOffer,
    normalize_drug_name,
)

logger = logging.getLogger("rxcompare.mock")

MIN_OFFERS = 5
MAX_OFFERS = 20
MIN_PRICE = 10.0
MAX_PRICE = 100.0
MIN_DISTANCE = 0.1
MILES_PER_DEGREE_LAT = 69.0

PHARMACY_CHAINS = [
    "CVS Pharmacy", "Walgreens", "Rite Aid", "Walmart Pharmacy",
    "Target Pharmacy", "Kroger Pharmacy", "Costco Pharmacy",
    "Publix Pharmacy", "Safeway Pharmacy", "HEB Pharmacy",
    "Albertsons Pharmacy", "Sam's Club Pharmacy", "Meijer Pharmacy",
    "Wegmans Pharmacy", "Duane Reade", "Harris Teeter Pharmacy",
    "Hy-Vee Pharmacy", "Fred Meyer Pharmacy", "Shopko Pharmacy", "Winn-Dixie Pharmacy",
]

# (brand name, generic name, gsn)
DRUG_CATALOGUE: list[tuple[str, str, int]] = [
    ("Lipitor", "Atorvastatin", 62733),
    ("Crestor", "Rosuvastatin", 75940),
    ("Zocor", "Simvastatin", 70956),
    ("Pravachol", "Pravastatin", 70954),
    ("Zestril", "Lisinopril", 19675),
    ("Prinivil", "Lisinopril", 19675),
    ("Norvasc", "Amlodipine", 19787),
    ("Toprol XL", "Metoprolol Succinate", 19839),
    ("Lopressor", "Metoprolol Tartrate", 19838),
    ("Tenormin", "Atenolol", 19853),
    ("Coreg", "Carvedilol", 21737),
    ("Diovan", "Valsartan", 21162),
    ("Cozaar", "Losartan", 21104),
    ("Benicar", "Olmesartan", 72063),
    ("Synthroid", "Levothyroxine", 12560),
    ("Cytomel", "Liothyronine", 12565),
    ("Glucophage", "Metformin", 17948),
    ("Glucophage XR", "Metformin ER", 17949),
    ("Januvia", "Sitagliptin", 77185),
    ("Actos", "Pioglitazone", 21346),
    ("Amaryl", "Glimepiride", 21344),
    ("Glucotrol", "Glipizide", 17950),
    ("Amoxil", "Amoxicillin", 8992),
    ("Zithromax", "Azithromycin", 26721),
    ("Prilosec", "Omeprazole", 24670),
    ("Protonix", "Pantoprazole", 27462),
    ("Zoloft", "Sertraline", 16364),
    ("Lexapro", "Escitalopram", 50535),
    ("Neurontin", "Gabapentin", 21413),
    ("Ventolin HFA", "Albuterol", 28090),
    ("Advair Diskus", "Fluticasone/Salmeterol", 48970),
    ("Microzide", "Hydrochlorothiazide", 8183),
]

DEFAULT_QUANTITIES = (30, 60, 90)


# ── Catalogue lookups ───────────────────────────────────────────────

def find_catalogue_entry(drug_name: str) -> Optional[tuple[str, str, int]]:
    """Exact brand/generic match first, then containment either way."""
    key = normalize_drug_name(drug_name)
    if not key:
        return None
    for entry in DRUG_CATALOGUE:
        if key in (entry[0].lower(), entry[1].lower()):
            return entry
    for entry in DRUG_CATALOGUE:
        for name in (entry[0].lower(), entry[1].lower()):
            if key in name or name in key:
                return entry
    return None


def find_gsn_by_name(drug_name: str) -> Optional[int]:
    entry = find_catalogue_entry(drug_name)
    return entry[2] if entry else None


def find_catalogue_by_gsn(gsn: int) -> Optional[tuple[str, str, int]]:
    for entry in DRUG_CATALOGUE:
        if entry[2] == gsn:
            return entry
    return None


def search_catalogue(prefix: str, limit: int = 10) -> list[dict]:
    """Catalogue names starting with (then containing) the prefix."""
    key = normalize_drug_name(prefix)
    if not key:
        return []
    starts, contains, seen = [], [], set()
    for brand, generic, gsn in DRUG_CATALOGUE:
        for name in (brand, generic):
            lower = name.lower()
            if lower in seen:
                continue
            if lower.startswith(key):
                starts.append({"drugName": name, "gsn": gsn})
                seen.add(lower)
            elif key in lower:
                contains.append({"drugName": name, "gsn": gsn})
                seen.add(lower)
    return (starts + contains)[:limit]


def mock_drug_record(query: DrugQuery) -> DrugRecord:
    """A plausible DrugRecord for a query, from the catalogue when possible."""
    if query.gsn is not None:
        entry = find_catalogue_by_gsn(query.gsn)
    else:
        entry = find_catalogue_entry(query.name or "")

    if entry:
        brand, generic, gsn = entry
    elif query.gsn is not None:
        brand, generic, gsn = f"Medication {query.gsn}", f"Generic Medication {query.gsn}", query.gsn
    else:
        brand = generic = (query.name or "").title()
        gsn = None

    return DrugRecord(
        brand_name=brand,
        generic_name=generic,
        gsn=gsn,
        forms=[DrugVariant(label="Tablet", selected=True)],
        quantities=[DrugVariant(label=str(q), selected=(i == 0)) for i, q in enumerate(DEFAULT_QUANTITIES)],
    )


# ── Offer generation ────────────────────────────────────────────────

def _seed_for(query: DrugQuery, location: Location) -> int:
    material = f"{query.key}|{location.latitude:.4f}|{location.longitude:.4f}|{location.radius_miles:.2f}"
    return int.from_bytes(hashlib.sha256(material.encode("utf-8")).digest()[:8], "big")


def _offset(lat: float, lng: float, distance: float, bearing: float) -> tuple[float, float]:
    """Move distance miles from (lat, lng) along bearing (radians)."""
    d_lat = distance / MILES_PER_DEGREE_LAT * math.cos(bearing)
    cos_lat = max(math.cos(math.radians(lat)), 0.01)
    d_lng = distance / (MILES_PER_DEGREE_LAT * cos_lat) * math.sin(bearing)
    new_lat = max(-90.0, min(90.0, lat + d_lat))
    new_lng = ((lng + d_lng + 180.0) % 360.0) - 180.0
    return round(new_lat, 6), round(new_lng, 6)


class SyntheticDataGenerator:
    """Produces 5–20 mock offers around a location; never fails."""

    def generate(self, query: DrugQuery, location: Location) -> list[PharmacyOffer]:
        rng = random.Random(_seed_for(query, location))
        count = rng.randint(MIN_OFFERS, MAX_OFFERS)
        radius = location.radius_miles
        low = min(MIN_DISTANCE, radius)

        offers = []
        for index, name in enumerate(PHARMACY_CHAINS[:count]):
            price = round(rng.uniform(MIN_PRICE, MAX_PRICE), 2)
            distance = max(low, min(radius, round(rng.uniform(low, radius), 1)))
            lat, lng = _offset(location.latitude, location.longitude, distance, rng.uniform(0, 2 * math.pi))
            offers.append(PharmacyOffer(
                pharmacy_name=name,
                price=price,
                distance_miles=distance,
                address=f"{100 + index} Main Street",
                postal_code=location.postal_code or "",
                phone=f"555-{100 + index:03d}-{1000 + index}",
                latitude=lat,
                longitude=lng,
                open_24h=index % 3 == 0,
                drive_up_window=index % 2 == 0,
                handicap_access=True,
                data_source=DATA_SOURCE_MOCK,
            ))

        logger.info("Generated %d mock offers for %s", len(offers), query.key)
        return offers
