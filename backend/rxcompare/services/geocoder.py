"""
ZIP-code geocoding with an in-memory cache and an offline fallback.

resolve() never fails for a well-formed 5-digit ZIP: if the mapping provider
is unreachable, unconfigured or returns nothing, coordinates are derived
from the ZIP digits themselves (first digit picks a regional anchor, the
remaining digits nudge it), so the same ZIP always lands on the same point.
"""

import logging
import math
import re
import threading
from typing import Optional

import requests

from rxcompare.errors import ValidationError

logger = logging.getLogger("rxcompare.geocoder")

EARTH_RADIUS_MILES = 3958.8
_ZIP_RE = re.compile(r"^\d{5}$")

# Well-known ZIP codes, seeded so common searches never hit the provider
KNOWN_ZIP_CODES: dict[str, tuple[float, float]] = {
    "78759": (30.4015, -97.7527),    # Austin, TX
    "10001": (40.7501, -73.9996),    # New York, NY
    "90210": (34.1030, -118.4105),   # Beverly Hills, CA
    "60601": (41.8855, -87.6221),    # Chicago, IL
    "33101": (25.7751, -80.1947),    # Miami, FL
    "80246": (39.7084, -104.9338),   # Denver, CO
    "98101": (47.6062, -122.3321),   # Seattle, WA
    "02108": (42.3601, -71.0589),    # Boston, MA
    "75201": (32.7767, -96.7970),    # Dallas, TX
    "30303": (33.7490, -84.3880),    # Atlanta, GA
    "94102": (37.7790, -122.4194),   # San Francisco, CA
}

# First ZIP digit → rough regional centre (lat, lng)
REGIONAL_ANCHORS: dict[int, tuple[float, float]] = {
    0: (42.0, -72.0),    # New England
    1: (40.5, -74.0),    # NY / PA
    2: (38.0, -77.0),    # Mid-Atlantic
    3: (33.0, -84.0),    # Southeast
    4: (37.0, -86.0),    # Ohio valley
    5: (42.0, -92.0),    # Upper Midwest
    6: (38.5, -92.0),    # Central plains
    7: (31.0, -96.0),    # South central
    8: (40.0, -106.0),   # Mountain
    9: (37.0, -120.0),   # Pacific
}
LAT_STEP = (0.1, 0.01)      # per unit of digits 2 and 3
LNG_STEP = (0.1, 0.01)      # per unit of digits 4 and 5


def validate_zip(postal_code) -> str:
    """Return the stripped ZIP or raise ValidationError."""
    zip_code = str(postal_code or "").strip()
    if not _ZIP_RE.match(zip_code):
        raise ValidationError(f"Please enter a valid 5-digit ZIP code (got {postal_code!r}).")
    return zip_code


def approximate_coordinates(zip_code: str) -> tuple[float, float]:
    """Deterministic regional approximation derived from the ZIP digits."""
    digits = [int(c) for c in zip_code]
    lat, lng = REGIONAL_ANCHORS[digits[0]]
    lat += digits[1] * LAT_STEP[0] + digits[2] * LAT_STEP[1]
    lng -= digits[3] * LNG_STEP[0] + digits[4] * LNG_STEP[1]
    return round(lat, 4), round(lng, 4)


def haversine_miles(lat1: float, lng1: float, lat2: float, lng2: float) -> float:
    """Great-circle distance in miles, rounded to one decimal."""
    d_lat = math.radians(lat2 - lat1)
    d_lng = math.radians(lng2 - lng1)
    a = (
        math.sin(d_lat / 2) ** 2
        + math.cos(math.radians(lat1)) * math.cos(math.radians(lat2)) * math.sin(d_lng / 2) ** 2
    )
    c = 2 * math.atan2(math.sqrt(a), math.sqrt(1 - a))
    return round(EARTH_RADIUS_MILES * c, 1)


class Geocoder:
    """Converts a ZIP code to coordinates; provider failures are always absorbed."""

    def __init__(
        self,
        api_key: str = "",
        geocode_url: str = "https://maps.googleapis.com/maps/api/geocode/json",
        timeout: float = 5.0,
        session: Optional[requests.Session] = None,
        seed_known: bool = True,
    ):
        self.api_key = api_key
        self.geocode_url = geocode_url
        self.timeout = timeout
        self._session = session or requests.Session()
        self._lock = threading.Lock()
        self._cache: dict[str, tuple[float, float]] = dict(KNOWN_ZIP_CODES) if seed_known else {}

    def resolve(self, postal_code: str) -> dict:
        """
        Return {"latitude", "longitude", "zipCode"} for a 5-digit ZIP.
        Raises ValidationError only for a malformed ZIP.
        """
        zip_code = validate_zip(postal_code)

        with self._lock:
            cached = self._cache.get(zip_code)
        if cached:
            logger.debug("Using cached coordinates for ZIP %s", zip_code)
            return {"latitude": cached[0], "longitude": cached[1], "zipCode": zip_code}

        coords = self._geocode(zip_code)
        if coords is None:
            coords = approximate_coordinates(zip_code)
            logger.info("Using regional approximation for ZIP %s: %s, %s", zip_code, *coords)

        with self._lock:
            self._cache[zip_code] = coords
        return {"latitude": coords[0], "longitude": coords[1], "zipCode": zip_code}

    def cached(self, postal_code: str) -> Optional[tuple[float, float]]:
        with self._lock:
            return self._cache.get(postal_code)

    def _geocode(self, zip_code: str) -> Optional[tuple[float, float]]:
        """Ask the mapping provider; None on any failure or empty result."""
        if not self.api_key:
            logger.debug("No geocoding API key configured; skipping provider for ZIP %s", zip_code)
            return None
        try:
            resp = self._session.get(
                self.geocode_url,
                params={
                    "address": zip_code,
                    "components": f"postal_code:{zip_code}|country:US",
                    "key": self.api_key,
                },
                timeout=self.timeout,
            )
            if resp.status_code != 200:
                logger.warning("Geocoding provider returned %s for ZIP %s", resp.status_code, zip_code)
                return None
            data = resp.json()
        except (requests.RequestException, ValueError) as exc:
            logger.warning("Geocoding request failed for ZIP %s: %s", zip_code, exc)
            return None

        results = data.get("results") if isinstance(data, dict) else None
        if not results:
            logger.info("Geocoding provider found nothing for ZIP %s (status=%s)",
                        zip_code, data.get("status") if isinstance(data, dict) else None)
            return None
        try:
            loc = results[0]["geometry"]["location"]
            return round(float(loc["lat"]), 4), round(float(loc["lng"]), 4)
        except (KeyError, IndexError, TypeError, ValueError) as exc:
            logger.warning("Unexpected geocoding payload for ZIP %s: %s", zip_code, exc)
            return None
