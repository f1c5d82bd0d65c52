"""
Pytest configuration & fixtures for RxCompare backend tests.

Key design decisions:
  - Environment is set before any rxcompare module loads, since Config
    reads it at import time.
  - No test touches the network: every component receives a FakeSession
    that serves scripted responses keyed by method and URL suffix.
"""

import json
import os
import sys

import pytest
import requests

# ── 1. Ensure backend package is importable ──
sys.path.insert(0, os.path.join(os.path.dirname(__file__), ".."))

# ── 2. Set test environment BEFORE anything else ──
os.environ["APP_ENV"] = "testing"
os.environ["FLASK_SECRET_KEY"] = "test-secret-key"
os.environ["PRICING_CLIENT_ID"] = "test-client-id"
os.environ["PRICING_CLIENT_SECRET"] = "test-client-secret"
os.environ["PRICING_API_URL"] = "https://pricing.example.test/pricing"
os.environ["PRICING_API_VERSION_PATH"] = "/pricing/v1"
os.environ["PRICING_AUTH_URL"] = "https://auth.example.test/oauth2/token"
os.environ["GOOGLE_MAPS_API_KEY"] = ""
os.environ["USE_MOCK_DATA"] = "false"
os.environ["RATE_LIMIT_DEFAULT"] = "10000/minute"

# ── 3. NOW safe to import application modules ──
from rxcompare.config import Config
from rxcompare.main import build_services, create_app
from rxcompare.models.models import DrugQuery, Location

API_ROOT = "https://pricing.example.test/pricing/v1"
TOKEN_PAYLOAD = {"access_token": "tok-123", "token_type": "Bearer", "expires_in": 3600}


# ═══════════════════════════════════════════
# FAKE HTTP
# ═══════════════════════════════════════════

class FakeResponse:
    def __init__(self, status_code=200, payload=None, text=None):
        self.status_code = status_code
        if text is None:
            text = json.dumps(payload) if payload is not None else ""
        self.text = text

    def json(self):
        return json.loads(self.text)


class FakeSession:
    """
    Scripted stand-in for requests.Session.
    Each route holds a queue of responses/exceptions; the last one repeats.
    Unscripted URLs answer 404.
    """

    def __init__(self):
        self.routes = {}
        self.calls = []

    def add(self, method, url_suffix, *responses):
        self.routes.setdefault((method.upper(), url_suffix), []).extend(responses)
        return self

    def request(self, method, url, **kwargs):
        method = method.upper()
        self.calls.append((method, url, kwargs))
        for (route_method, suffix), queue in self.routes.items():
            if route_method == method and url.endswith(suffix):
                item = queue.pop(0) if len(queue) > 1 else queue[0]
                if isinstance(item, Exception):
                    raise item
                return item
        return FakeResponse(404, text="not found")

    def post(self, url, **kwargs):
        return self.request("POST", url, **kwargs)

    def get(self, url, **kwargs):
        return self.request("GET", url, **kwargs)

    def count(self, method, url_suffix):
        return sum(1 for m, url, _ in self.calls if m == method.upper() and url.endswith(url_suffix))

    def urls(self):
        return [url for _, url, _ in self.calls]


def timeout_error():
    return requests.Timeout("read timed out")


# ═══════════════════════════════════════════
# PAYLOADS
# ═══════════════════════════════════════════

NESTED_PRICES = {
    "drugInfo": {
        "brandName": "Lipitor",
        "genericName": "Atorvastatin",
        "gsn": 62733,
        "forms": [{"form": "Tablet", "selected": True}],
        "strengths": [
            {"strength": "10 mg", "gsn": 62733, "selected": True},
            {"strength": "20 mg", "gsn": 62734},
        ],
        "quantities": [{"quantity": "30", "selected": True}, {"quantity": "90"}],
    },
    "pharmacyPrices": [
        {
            "pharmacy": {"name": "Walgreens", "address": "2 Oak Ave", "city": "Austin",
                         "state": "TX", "zipCode": "78759", "distance": "2.5"},
            "price": {"price": "15.40", "ucPrice": "40.00"},
        },
        {
            "pharmacy": {"name": "CVS Pharmacy", "address": "1 Main St", "city": "Austin",
                         "state": "TX", "zipCode": "78759", "distance": "1.2", "open24H": True},
            "price": {"price": "12.99"},
        },
        {
            "pharmacy": {"name": "H-E-B Pharmacy", "distance": "0.8"},
            "price": {"price": "12.99"},
        },
    ],
}

FLAT_PRICES = {
    "pharmacies": [
        {"name": "Walgreens", "price": 15.40, "distance": 2.5, "address": "2 Oak Ave",
         "city": "Austin", "state": "TX", "zipCode": "78759"},
        {"name": "CVS Pharmacy", "price": "$12.99", "distance": "1.2 miles", "address": "1 Main St",
         "city": "Austin", "state": "TX", "zipCode": "78759", "open24H": "true"},
        {"name": "H-E-B Pharmacy", "price": "12.99", "distance": 0.8},
    ],
}


# ═══════════════════════════════════════════
# FIXTURES
# ═══════════════════════════════════════════

@pytest.fixture
def fake_session():
    """FakeSession with a working token endpoint."""
    session = FakeSession()
    session.add("POST", "/oauth2/token", FakeResponse(200, TOKEN_PAYLOAD))
    return session


@pytest.fixture
def services(fake_session):
    return build_services(Config, session=fake_session)


@pytest.fixture
def engine(services):
    return services["engine"]


@pytest.fixture
def austin():
    return Location(latitude=30.4015, longitude=-97.7527, radius_miles=10, postal_code="78759")


@pytest.fixture
def lipitor():
    return DrugQuery.by_name("lipitor")


@pytest.fixture
def app(services):
    """Create application for testing, wired to the fake session."""
    application = create_app(Config, services=services)
    application.config["TESTING"] = True
    return application


@pytest.fixture
def client(app):
    with app.test_client() as c:
        yield c
