"""
Transient data model for price resolution.
Nothing here is persisted: every object is built per request and
serialised with to_dict() for the JSON API.
"""

import math
import re
from dataclasses import dataclass, field, replace
from datetime import datetime, timezone
from typing import Optional

from rxcompare.errors import ValidationError

DATA_SOURCE_UPSTREAM = "upstream"
DATA_SOURCE_MOCK = "mock"

_WHITESPACE = re.compile(r"\s+")


def normalize_drug_name(name: str) -> str:
    """Lower-case and collapse whitespace; used for cache and comparison keys."""
    return _WHITESPACE.sub(" ", name or "").strip().lower()


@dataclass(frozen=True)
class DrugQuery:
    """Either a drug name or a GSN, never both."""
    name: Optional[str] = None
    gsn: Optional[int] = None

    @classmethod
    def by_name(cls, name: str) -> "DrugQuery":
        return cls(name=normalize_drug_name(name) or None)

    @classmethod
    def by_gsn(cls, gsn) -> "DrugQuery":
        try:
            value = int(gsn)
        except (TypeError, ValueError):
            raise ValidationError(f"GSN must be an integer, got {gsn!r}.")
        return cls(gsn=value)

    def validate(self) -> None:
        has_name = bool(self.name and self.name.strip())
        has_gsn = self.gsn is not None
        if has_name == has_gsn:
            raise ValidationError("Provide exactly one of drug name or GSN.")
        if has_gsn and (isinstance(self.gsn, bool) or self.gsn <= 0):
            raise ValidationError(f"GSN must be a positive integer, got {self.gsn!r}.")

    @property
    def key(self) -> str:
        if self.gsn is not None:
            return f"gsn:{self.gsn}"
        return f"name:{normalize_drug_name(self.name)}"

    def to_dict(self):
        return {"drugName": self.name, "gsn": self.gsn}


@dataclass(frozen=True)
class Location:
    latitude: float
    longitude: float
    radius_miles: float
    postal_code: Optional[str] = None

    def validate(self) -> None:
        if self.radius_miles is None or not math.isfinite(self.radius_miles) or self.radius_miles <= 0:
            raise ValidationError(f"Search radius must be greater than 0, got {self.radius_miles!r}.")
        if not -90.0 <= self.latitude <= 90.0:
            raise ValidationError(f"Latitude must be within [-90, 90], got {self.latitude!r}.")
        if not -180.0 <= self.longitude <= 180.0:
            raise ValidationError(f"Longitude must be within [-180, 180], got {self.longitude!r}.")

    def to_dict(self):
        return {
            "latitude": self.latitude,
            "longitude": self.longitude,
            "postalCode": self.postal_code,
            "radiusMiles": self.radius_miles,
        }


@dataclass(frozen=True)
class PharmacyOffer:
    """One pharmacy's price quote, normalized to a common shape."""
    pharmacy_name: str
    price: float
    distance_miles: float = 0.0
    address: str = ""
    city: str = ""
    state: str = ""
    postal_code: str = ""
    phone: str = ""
    latitude: Optional[float] = None
    longitude: Optional[float] = None
    open_24h: bool = False
    drive_up_window: bool = False
    handicap_access: bool = False
    data_source: str = DATA_SOURCE_UPSTREAM

    @property
    def sort_key(self) -> tuple:
        return (self.price, self.distance_miles)

    def to_dict(self):
        return {
            "pharmacyName": self.pharmacy_name,
            "price": self.price,
            "distanceMiles": self.distance_miles,
            "address": self.address,
            "city": self.city,
            "state": self.state,
            "postalCode": self.postal_code,
            "phone": self.phone,
            "latitude": self.latitude,
            "longitude": self.longitude,
            "open24H": self.open_24h,
            "driveUpWindow": self.drive_up_window,
            "handicapAccess": self.handicap_access,
            "dataSource": self.data_source,
        }


@dataclass(frozen=True)
class DrugVariant:
    """A form, strength or quantity option; gsn is the more specific catalog id."""
    label: str
    gsn: Optional[int] = None
    selected: bool = False

    def to_dict(self):
        return {"label": self.label, "gsn": self.gsn, "selected": self.selected}


def _single_selection(variants: list[DrugVariant]) -> list[DrugVariant]:
    """Keep only the first selected flag so at most one entry is selected."""
    seen = False
    result = []
    for v in variants:
        if v.selected and seen:
            v = replace(v, selected=False)
        seen = seen or v.selected
        result.append(v)
    return result


@dataclass(frozen=True)
class DrugRecord:
    brand_name: str
    generic_name: str
    gsn: Optional[int] = None
    forms: list[DrugVariant] = field(default_factory=list)
    strengths: list[DrugVariant] = field(default_factory=list)
    quantities: list[DrugVariant] = field(default_factory=list)

    def __post_init__(self):
        object.__setattr__(self, "forms", _single_selection(list(self.forms)))
        object.__setattr__(self, "strengths", _single_selection(list(self.strengths)))
        object.__setattr__(self, "quantities", _single_selection(list(self.quantities)))

    @staticmethod
    def default_of(variants: list[DrugVariant]) -> Optional[DrugVariant]:
        """The selected entry, else the first one, else None."""
        for v in variants:
            if v.selected:
                return v
        return variants[0] if variants else None

    @property
    def selected_form(self) -> Optional[DrugVariant]:
        return self.default_of(self.forms)

    @property
    def selected_strength(self) -> Optional[DrugVariant]:
        return self.default_of(self.strengths)

    @property
    def selected_quantity(self) -> Optional[DrugVariant]:
        return self.default_of(self.quantities)

    def to_dict(self):
        return {
            "brandName": self.brand_name,
            "genericName": self.generic_name,
            "gsn": self.gsn,
            "forms": [v.to_dict() for v in self.forms],
            "strengths": [v.to_dict() for v in self.strengths],
            "quantities": [v.to_dict() for v in self.quantities],
        }


@dataclass(frozen=True)
class AuthToken:
    value: str
    expires_at: float  # epoch seconds
    token_type: str = "Bearer"

    def is_fresh(self, now: float, safety_margin: float) -> bool:
        return now < self.expires_at - safety_margin

    @property
    def expires_at_iso(self) -> str:
        return datetime.fromtimestamp(self.expires_at, tz=timezone.utc).isoformat()


@dataclass(frozen=True)
class ResolutionResult:
    """The only value the engine hands back to callers."""
    offers: list[PharmacyOffer]
    drug: Optional[DrugRecord] = None
    used_mock_data: bool = False
    warnings: list[str] = field(default_factory=list)

    def to_dict(self):
        return {
            "offers": [o.to_dict() for o in self.offers],
            "drug": self.drug.to_dict() if self.drug else None,
            "usedMockData": self.used_mock_data,
            "warnings": list(self.warnings),
        }
