"""
Thin HTTP transport for the upstream pricing API.
Sends one CandidateRequest with a bearer token and a per-attempt timeout;
anything other than a 2xx response becomes an UpstreamError.
"""

import logging
import time

import requests

from rxcompare.errors import UpstreamError
from rxcompare.services.upstream.endpoints import CandidateRequest

logger = logging.getLogger("rxcompare.upstream")


class UpstreamClient:
    def __init__(self, session: requests.Session = None, timeout: float = 5.0):
        self._session = session or requests.Session()
        self.timeout = timeout

    def send(self, candidate: CandidateRequest, token: str) -> str:
        """Return the raw response body; raises UpstreamError on failure."""
        if not candidate.is_bound:
            raise UpstreamError(f"{candidate.kind}: request has an unbound '{candidate.needs}' slot")

        headers = {
            "Authorization": f"Bearer {token}",
            "Accept": "application/json",
        }
        kwargs = {"headers": headers, "timeout": self.timeout}
        if candidate.params:
            kwargs["params"] = candidate.params
        if candidate.body is not None:
            headers["Content-Type"] = "application/json"
            kwargs["json"] = candidate.body

        started = time.monotonic()
        try:
            resp = self._session.request(candidate.method, candidate.url, **kwargs)
        except requests.Timeout as exc:
            logger.warning("%s timed out after %.1fs", candidate.describe(), self.timeout)
            raise UpstreamError(f"{candidate.kind} timed out after {self.timeout}s", timed_out=True) from exc
        except requests.RequestException as exc:
            logger.warning("%s failed: %s", candidate.describe(), exc)
            raise UpstreamError(f"{candidate.kind} request failed: {exc}") from exc

        elapsed_ms = (time.monotonic() - started) * 1000
        if not 200 <= resp.status_code < 300:
            logger.warning("%s returned %s in %.0fms: %s",
                           candidate.describe(), resp.status_code, elapsed_ms, resp.text[:200])
            raise UpstreamError(f"{candidate.kind} returned HTTP {resp.status_code}",
                                status_code=resp.status_code)

        logger.info("%s returned %s in %.0fms", candidate.describe(), resp.status_code, elapsed_ms)
        return resp.text
