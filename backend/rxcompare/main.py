"""
RxCompare – Flask Application Factory
Builds the pricing services once per app and exposes them over a JSON API.
"""

import logging

from flask import Flask, jsonify
from flask_cors import CORS
from flask_limiter import Limiter
from flask_limiter.util import get_remote_address

from rxcompare.config import Config
from rxcompare.errors import ValidationError
from rxcompare.middleware.request_logger import log_after_request, start_request_timer
from rxcompare.routes.drugs import drugs_bp
from rxcompare.routes.locations import locations_bp
from rxcompare.routes.pricing import pricing_bp
from rxcompare.routes.status import status_bp
from rxcompare.services.credential_provider import CredentialProvider
from rxcompare.services.drug_search_service import DrugSearchService
from rxcompare.services.geocoder import Geocoder
from rxcompare.services.mock_data import SyntheticDataGenerator
from rxcompare.services.price_resolution_service import PriceResolutionEngine
from rxcompare.services.upstream.client import UpstreamClient
from rxcompare.services.upstream.endpoints import EndpointResolver

logger = logging.getLogger("rxcompare.app")

limiter = Limiter(key_func=get_remote_address, default_limits=[Config.RATE_LIMIT_DEFAULT])


def build_services(config=Config, session=None) -> dict:
    """
    Wire the pricing components together. One CredentialProvider per app,
    so every request shares the same token cache.
    """
    credentials = CredentialProvider(
        auth_url=config.PRICING_AUTH_URL,
        client_id=config.PRICING_CLIENT_ID,
        client_secret=config.PRICING_CLIENT_SECRET,
        scope=config.PRICING_SCOPE,
        timeout=config.TOKEN_TIMEOUT_SECONDS,
        session=session,
    )
    resolver = EndpointResolver(
        base_url=config.PRICING_API_URL,
        version_path=config.PRICING_API_VERSION_PATH,
        hq_mapping=config.PRICING_HQ_MAPPING,
        max_pharmacies=config.MAX_PHARMACIES,
    )
    client = UpstreamClient(session=session, timeout=config.UPSTREAM_TIMEOUT_SECONDS)
    geocoder = Geocoder(
        api_key=config.GOOGLE_MAPS_API_KEY,
        geocode_url=config.GEOCODE_URL,
        timeout=config.UPSTREAM_TIMEOUT_SECONDS,
        session=session,
    )
    engine = PriceResolutionEngine(
        credentials=credentials,
        resolver=resolver,
        client=client,
        generator=SyntheticDataGenerator(),
        geocoder=geocoder,
        use_mock_data=config.USE_MOCK_DATA,
    )
    search = DrugSearchService(credentials, resolver, client, use_mock_data=config.USE_MOCK_DATA)
    return {
        "credentials": credentials,
        "resolver": resolver,
        "client": client,
        "geocoder": geocoder,
        "engine": engine,
        "search": search,
    }


def create_app(config_class=Config, services: dict = None) -> Flask:
    config_class.validate()

    app = Flask(__name__)
    app.config["SECRET_KEY"] = config_class.FLASK_SECRET_KEY
    app.config["DEBUG"] = config_class.DEBUG
    app.config["RXCOMPARE"] = config_class

    # Extensions
    CORS(app, resources={r"/api/*": {"origins": "*"}})
    limiter.init_app(app)
    app.extensions["rxcompare"] = services or build_services(config_class)

    # Middleware
    app.before_request(start_request_timer)
    app.after_request(log_after_request)

    # Blueprints
    app.register_blueprint(pricing_bp, url_prefix="/api/pricing")
    app.register_blueprint(drugs_bp, url_prefix="/api/drugs")
    app.register_blueprint(locations_bp, url_prefix="/api/locations")
    app.register_blueprint(status_bp, url_prefix="/api/status")

    @app.errorhandler(ValidationError)
    def handle_validation_error(exc):
        return jsonify({"error": str(exc)}), 400

    # Health check
    @app.route("/api/health")
    def health():
        return {"status": "ok", "service": "rxcompare"}

    logger.info("RxCompare app created (env=%s, mock=%s)", config_class.APP_ENV, config_class.USE_MOCK_DATA)
    return app
