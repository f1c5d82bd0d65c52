"""
Upstream endpoint catalogue and request builder.

The pricing API exposes the same capability through several inconsistent
paths, so build_request() returns an ordered list of candidates rather than
one request. Lookup candidates (GSN-by-name, name-by-GSN) discover an
identifier that later price candidates are bound to at execution time.

Endpoint shapes, relative to the versioned API root:
    price-by-GSN    POST /drugprices/byGSN   {hqMappingName, gsn, latitude, longitude, radius, ...}
    price-by-name   POST /drugprices/byName  {hqMappingName, drugName, latitude, longitude, radius, ...}
    name-prefix     GET  /drugs/{prefix}?count=&hqAlias=
    names-list      POST /drugs/names        {hqMappingName, prefixText}
    GSN-by-name     GET  /druginfo/{drugName}        → {gsn}
    name-by-GSN     GET  /drugs/info/{gsn}           → {drugName | brandName | genericName}
"""

from dataclasses import dataclass, replace
from typing import Optional
from urllib.parse import quote, urlsplit, urlunsplit

from rxcompare.models.models import DrugQuery, Location

KIND_PRICE_BY_GSN = "price-by-gsn"
KIND_PRICE_BY_NAME = "price-by-name"
KIND_GSN_BY_NAME = "gsn-by-name"
KIND_NAME_BY_GSN = "name-by-gsn"
KIND_NAME_PREFIX = "name-prefix"
KIND_NAMES_LIST = "names-list"

PRICE_KINDS = (KIND_PRICE_BY_GSN, KIND_PRICE_BY_NAME)

# Slots a lookup can fill; the value is also the request-body key.
SLOT_GSN = "gsn"
SLOT_DRUG_NAME = "drugName"


@dataclass(frozen=True)
class CandidateRequest:
    """One attempt in the fallback chain."""
    kind: str
    method: str
    url: str
    body: Optional[dict] = None
    params: Optional[dict] = None
    needs: Optional[str] = None      # slot that must be bound before sending
    provides: Optional[str] = None   # slot this lookup discovers

    @property
    def is_lookup(self) -> bool:
        return self.provides is not None

    @property
    def is_bound(self) -> bool:
        return self.needs is None

    def bind(self, value) -> "CandidateRequest":
        """Fill the pending slot with an identifier discovered by a lookup."""
        if self.needs is None:
            return self
        body = dict(self.body or {})
        body[self.needs] = int(value) if self.needs == SLOT_GSN else str(value)
        return replace(self, body=body, needs=None)

    def describe(self) -> str:
        return f"{self.kind} {self.method} {self.url}"


def normalize_base_url(base_url: str, version_path: str) -> str:
    """
    Strip trailing slashes and append the versioned path only where the base
    does not already carry it. A base ending in a leading part of the version
    path ("/pricing" vs "/pricing/v1") only gets the missing tail, so no
    segment is ever duplicated (a duplicated segment yields a silent 404).
    """
    base = (base_url or "").strip().rstrip("/")
    version_segments = [s for s in (version_path or "").split("/") if s]
    if not version_segments:
        return base

    parts = urlsplit(base)
    path_segments = [s for s in parts.path.split("/") if s]

    n = len(version_segments)
    for i in range(len(path_segments) - n + 1):
        if path_segments[i:i + n] == version_segments:
            return base

    overlap = 0
    for k in range(min(n, len(path_segments)), 0, -1):
        if path_segments[-k:] == version_segments[:k]:
            overlap = k
            break

    new_path = "/" + "/".join(path_segments + version_segments[overlap:])
    return urlunsplit((parts.scheme, parts.netloc, new_path, parts.query, parts.fragment))


class EndpointResolver:
    """Knows every upstream endpoint shape and the order to try them in."""

    def __init__(self, base_url: str, version_path: str = "/pricing/v1",
                 hq_mapping: str = "walkerrx", max_pharmacies: int = 10):
        self.api_root = normalize_base_url(base_url, version_path)
        self.hq_mapping = hq_mapping
        self.max_pharmacies = max_pharmacies

    def url(self, path: str) -> str:
        return f"{self.api_root}/{path.lstrip('/')}"

    # ── fallback chains ─────────────────────────────────────────────

    def build_request(self, query: DrugQuery, location: Optional[Location] = None,
                      quantity: Optional[int] = None) -> list[CandidateRequest]:
        """
        Ordered candidates for a price query.

        By GSN:  price-by-GSN → name-by-GSN lookup → price-by-name(discovered name)
        By name: price-by-name → GSN-by-name lookup → price-by-GSN(discovered gsn)
        """
        query.validate()
        if query.gsn is not None:
            return [
                self.price_request(KIND_PRICE_BY_GSN, location, quantity, gsn=query.gsn),
                self.name_lookup(query.gsn),
                self.price_request(KIND_PRICE_BY_NAME, location, quantity),
            ]
        return [
            self.price_request(KIND_PRICE_BY_NAME, location, quantity, drug_name=query.name),
            self.gsn_lookup(query.name),
            self.price_request(KIND_PRICE_BY_GSN, location, quantity),
        ]

    def prefix_requests(self, prefix: str, count: int = 10) -> list[CandidateRequest]:
        """Ordered candidates for autocomplete: GET name-prefix, then POST names-list."""
        prefix = prefix.strip().lower()
        return [
            CandidateRequest(
                kind=KIND_NAME_PREFIX,
                method="GET",
                url=self.url(f"drugs/{quote(prefix, safe='')}"),
                params={"count": count, "hqAlias": self.hq_mapping},
            ),
            CandidateRequest(
                kind=KIND_NAMES_LIST,
                method="POST",
                url=self.url("drugs/names"),
                body={"hqMappingName": self.hq_mapping, "prefixText": prefix},
            ),
        ]

    # ── single requests ─────────────────────────────────────────────

    def price_request(self, kind: str, location: Optional[Location] = None,
                      quantity: Optional[int] = None, gsn: Optional[int] = None,
                      drug_name: Optional[str] = None) -> CandidateRequest:
        if kind == KIND_PRICE_BY_GSN:
            path, slot, value = "drugprices/byGSN", SLOT_GSN, gsn
        elif kind == KIND_PRICE_BY_NAME:
            path, slot, value = "drugprices/byName", SLOT_DRUG_NAME, drug_name
        else:
            raise ValueError(f"Not a price endpoint: {kind}")

        body: dict = {"hqMappingName": self.hq_mapping}
        if location is not None:
            body.update({
                "latitude": location.latitude,
                "longitude": location.longitude,
                "radius": location.radius_miles,
            })
        body["maximumPharmacies"] = self.max_pharmacies
        if quantity:
            body["quantity"] = int(quantity)
            body["customizedQuantity"] = True

        candidate = CandidateRequest(kind=kind, method="POST", url=self.url(path), body=body, needs=slot)
        return candidate.bind(value) if value is not None else candidate

    def gsn_lookup(self, drug_name: str) -> CandidateRequest:
        return CandidateRequest(
            kind=KIND_GSN_BY_NAME,
            method="GET",
            url=self.url(f"druginfo/{quote(drug_name, safe='')}"),
            provides=SLOT_GSN,
        )

    def name_lookup(self, gsn: int) -> CandidateRequest:
        return CandidateRequest(
            kind=KIND_NAME_BY_GSN,
            method="GET",
            url=self.url(f"drugs/info/{int(gsn)}"),
            provides=SLOT_DRUG_NAME,
        )
