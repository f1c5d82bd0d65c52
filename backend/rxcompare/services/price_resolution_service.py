"""
Price resolution engine – the single entry point for pharmacy price lookups.

Resolution flow:
  validate → obtain token → walk the ordered candidate list
  (price attempt | identifier lookup)* → normalize → sort → result,
  or → synthetic offers when every candidate fails or returns nothing.

Attempts run strictly in sequence, each bounded by the client's timeout.
A failed attempt moves on to the next distinct endpoint; the same endpoint
is never retried. Only ValidationError (and ResolutionCancelled, when the
caller asks for it) escapes; every upstream problem ends in a successful
ResolutionResult, with usedMockData=true and a warning when nothing real
could be found.
"""

import logging
import threading
from typing import Any, Optional

from rxcompare.errors import AuthError, ResolutionCancelled, SchemaError, UpstreamError
from rxcompare.models.models import DrugQuery, Location, PharmacyOffer, ResolutionResult
from rxcompare.services.credential_provider import CredentialProvider
from rxcompare.services.geocoder import Geocoder
from rxcompare.services.mock_data import SyntheticDataGenerator, mock_drug_record
from rxcompare.services.upstream.client import UpstreamClient
from rxcompare.services.upstream.endpoints import SLOT_GSN, CandidateRequest, EndpointResolver
from rxcompare.services.upstream.normalizer import (
    extract_drug_name,
    extract_gsn,
    normalize,
    normalize_drug_record,
)

logger = logging.getLogger("rxcompare.resolution")


def sort_offers(offers: list[PharmacyOffer]) -> list[PharmacyOffer]:
    """Cheapest first, nearest breaks ties; stable, so equal offers keep upstream order."""
    return sorted(offers, key=lambda o: o.sort_key)


class PriceResolutionEngine:
    """Turns a drug query and a location into a sorted list of offers."""

    def __init__(
        self,
        credentials: CredentialProvider,
        resolver: EndpointResolver,
        client: UpstreamClient,
        generator: Optional[SyntheticDataGenerator] = None,
        geocoder: Optional[Geocoder] = None,
        use_mock_data: bool = False,
    ):
        self.credentials = credentials
        self.resolver = resolver
        self.client = client
        self.generator = generator or SyntheticDataGenerator()
        self.geocoder = geocoder or Geocoder()
        self.use_mock_data = use_mock_data

    def locate(self, postal_code: str, radius_miles: float) -> Location:
        """Build a Location from a ZIP code (ValidationError for a malformed ZIP)."""
        coords = self.geocoder.resolve(postal_code)
        return Location(
            latitude=coords["latitude"],
            longitude=coords["longitude"],
            radius_miles=radius_miles,
            postal_code=coords["zipCode"],
        )

    def resolve_prices(
        self,
        query: DrugQuery,
        location: Location,
        quantity: Optional[int] = None,
        cancel_event: Optional[threading.Event] = None,
    ) -> ResolutionResult:
        query.validate()
        location.validate()

        if self.use_mock_data:
            return self._mock_fallback(query, location, "Mock data mode is enabled; the pricing service was not queried.")

        _check_cancelled(cancel_event)
        try:
            token = self.credentials.get_token()
        except AuthError as exc:
            logger.warning("No token for %s, skipping upstream: %s", query.key, exc)
            return self._mock_fallback(query, location, f"Could not authenticate with the pricing service ({exc}).")

        candidates = self.resolver.build_request(query, location, quantity)
        origin = (location.latitude, location.longitude)
        slots: dict[str, Any] = {}
        failures: list[str] = []

        for attempt, candidate in enumerate(candidates, start=1):
            _check_cancelled(cancel_event)
            if not candidate.is_bound:
                value = slots.get(candidate.needs)
                if value is None:
                    failures.append(f"{candidate.kind}: skipped, no {candidate.needs} discovered")
                    continue
                candidate = candidate.bind(value)

            logger.info("Attempt %d/%d for %s: %s", attempt, len(candidates), query.key, candidate.describe())
            try:
                body = self.client.send(candidate, token)
                if candidate.is_lookup:
                    self._record_lookup(candidate, body, slots, failures)
                    continue
                offers = normalize(body, candidate.kind, origin=origin)
            except UpstreamError as exc:
                if exc.status_code == 401:
                    self.credentials.invalidate(token)
                failures.append(f"{candidate.kind}: {exc}")
                continue
            except SchemaError as exc:
                failures.append(f"{candidate.kind}: {exc}")
                continue
            except Exception as exc:
                logger.exception("Unexpected error during %s", candidate.kind)
                failures.append(f"{candidate.kind}: unexpected error ({exc})")
                continue

            if not offers:
                # An empty price list may still name the drug's GSN.
                gsn = _safe_extract(extract_gsn, body)
                if gsn is not None:
                    slots.setdefault(SLOT_GSN, gsn)
                failures.append(f"{candidate.kind}: no usable offers")
                continue

            logger.info("Resolved %d offer(s) for %s via %s", len(offers), query.key, candidate.kind)
            return ResolutionResult(
                offers=sort_offers(offers),
                drug=_safe_extract(normalize_drug_record, body),
                used_mock_data=False,
                warnings=[],
            )

        logger.warning("All %d candidates failed for %s: %s", len(candidates), query.key, "; ".join(failures))
        return self._mock_fallback(
            query, location,
            "The pricing service returned no usable prices; showing estimated prices instead. "
            f"({'; '.join(failures)})",
        )

    # ── helpers ─────────────────────────────────────────────────────

    @staticmethod
    def _record_lookup(candidate: CandidateRequest, body: str, slots: dict, failures: list[str]) -> None:
        extractor = extract_gsn if candidate.provides == SLOT_GSN else extract_drug_name
        value = extractor(body)
        if value is None:
            failures.append(f"{candidate.kind}: no {candidate.provides} in response")
            return
        logger.info("%s discovered %s=%s", candidate.kind, candidate.provides, value)
        slots[candidate.provides] = value

    def _mock_fallback(self, query: DrugQuery, location: Location, reason: str) -> ResolutionResult:
        logger.warning("Falling back to mock data for %s: %s", query.key, reason)
        offers = self.generator.generate(query, location)
        return ResolutionResult(
            offers=sort_offers(offers),
            drug=mock_drug_record(query),
            used_mock_data=True,
            warnings=[reason],
        )


def _check_cancelled(cancel_event: Optional[threading.Event]) -> None:
    if cancel_event is not None and cancel_event.is_set():
        raise ResolutionCancelled("Price resolution cancelled by caller.")


def _safe_extract(extractor, body):
    try:
        return extractor(body)
    except Exception as exc:
        logger.warning("Ignoring unreadable upstream detail: %s", exc)
        return None
