"""
Drug name autocomplete and GSN lookup.
Queries the upstream name endpoints first and falls back to the local
drug catalogue when the service is unreachable or returns nothing.
"""

import logging
from typing import Optional

from rxcompare.errors import AuthError, SchemaError, UpstreamError, ValidationError
from rxcompare.models.models import normalize_drug_name
from rxcompare.services.credential_provider import CredentialProvider
from rxcompare.services.mock_data import find_catalogue_entry, find_gsn_by_name, search_catalogue
from rxcompare.services.upstream.client import UpstreamClient
from rxcompare.services.upstream.endpoints import EndpointResolver
from rxcompare.services.upstream.normalizer import extract_gsn, normalize_name_suggestions

logger = logging.getLogger("rxcompare.search")

MIN_PREFIX_LENGTH = 3
MAX_SUGGESTIONS = 25


class DrugSearchService:
    def __init__(
        self,
        credentials: CredentialProvider,
        resolver: EndpointResolver,
        client: UpstreamClient,
        use_mock_data: bool = False,
    ):
        self.credentials = credentials
        self.resolver = resolver
        self.client = client
        self.use_mock_data = use_mock_data

    def autocomplete(self, prefix: str, count: int = 10) -> dict:
        """
        Suggestions for a name prefix: {"suggestions": [{drugName, gsn}], "isMockData"}.
        Prefixes shorter than three characters return no suggestions.
        """
        key = normalize_drug_name(prefix)
        count = max(1, min(int(count), MAX_SUGGESTIONS))
        if len(key) < MIN_PREFIX_LENGTH:
            return {"suggestions": [], "isMockData": False}

        if not self.use_mock_data:
            token = self._token()
            if token:
                for candidate in self.resolver.prefix_requests(key, count):
                    try:
                        suggestions = normalize_name_suggestions(self.client.send(candidate, token))
                    except (UpstreamError, SchemaError) as exc:
                        self._note_failure(exc, token)
                        continue
                    if suggestions:
                        for item in suggestions:
                            if item["gsn"] is None:
                                item["gsn"] = find_gsn_by_name(item["drugName"])
                        return {"suggestions": suggestions[:count], "isMockData": False}

        logger.info("Autocomplete for '%s' served from the local catalogue", key)
        return {"suggestions": search_catalogue(key, count), "isMockData": True}

    def find_gsn(self, drug_name: str) -> Optional[dict]:
        """GSN for a drug name: {"drugName", "gsn", "isMockData"}, or None if unknown."""
        key = normalize_drug_name(drug_name)
        if not key:
            raise ValidationError("Drug name is required.")

        if not self.use_mock_data:
            token = self._token()
            if token:
                try:
                    gsn = extract_gsn(self.client.send(self.resolver.gsn_lookup(key), token))
                except (UpstreamError, SchemaError) as exc:
                    self._note_failure(exc, token)
                    gsn = None
                if gsn:
                    return {"drugName": key, "gsn": gsn, "isMockData": False}

        entry = find_catalogue_entry(key)
        if entry is None:
            return None
        return {"drugName": entry[0], "gsn": entry[2], "isMockData": True}

    def _token(self) -> Optional[str]:
        try:
            return self.credentials.get_token()
        except AuthError as exc:
            logger.warning("Drug search without upstream access: %s", exc)
            return None

    def _note_failure(self, exc: Exception, token: str) -> None:
        if isinstance(exc, UpstreamError) and exc.status_code == 401:
            self.credentials.invalidate(token)
        logger.warning("Drug search request failed: %s", exc)
