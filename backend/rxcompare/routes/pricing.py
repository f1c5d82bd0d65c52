"""
Pricing routes – pharmacy price comparison for a drug near a location.
Every successful response is a ResolutionResult; upstream trouble shows up
as usedMockData=true plus a warning, never as an error status.
"""

from typing import Optional

from flask import Blueprint, current_app, jsonify, request

from rxcompare.errors import ValidationError
from rxcompare.models.models import DrugQuery, Location

pricing_bp = Blueprint("pricing", __name__)


def _services() -> dict:
    return current_app.extensions["rxcompare"]


def _number(value, name: str, cast=float):
    if value is None or value == "":
        return None
    try:
        return cast(value)
    except (TypeError, ValueError):
        raise ValidationError(f"'{name}' must be a number, got {value!r}.")


def _quantity(value) -> Optional[int]:
    quantity = _number(value, "quantity", int)
    if quantity is not None and quantity <= 0:
        raise ValidationError("'quantity' must be a positive integer.")
    return quantity


def _location(params) -> Location:
    """Coordinates from the request, or from the geocoder when only a ZIP is given."""
    config = current_app.config["RXCOMPARE"]
    radius = _number(params.get("radius"), "radius")
    if radius is None:
        radius = config.DEFAULT_RADIUS_MILES

    latitude = _number(params.get("latitude"), "latitude")
    longitude = _number(params.get("longitude"), "longitude")
    zip_code = params.get("zipCode")
    if latitude is not None and longitude is not None:
        return Location(latitude=latitude, longitude=longitude, radius_miles=radius,
                        postal_code=str(zip_code) if zip_code else None)
    if zip_code:
        return _services()["engine"].locate(str(zip_code), radius)
    raise ValidationError("Provide latitude and longitude or a zipCode.")


def _resolve(query: DrugQuery, params):
    query.validate()
    location = _location(params)
    result = _services()["engine"].resolve_prices(query, location, quantity=_quantity(params.get("quantity")))
    return jsonify(result.to_dict()), 200


@pricing_bp.route("/resolve", methods=["POST"])
def resolve_pricing():
    """
    Resolve prices from a JSON body:
        {drugName | gsn, latitude?, longitude?, zipCode?, radius?, quantity?}
    """
    data = request.get_json(silent=True)
    if not isinstance(data, dict):
        raise ValidationError("Request body must be a JSON object.")

    name = data.get("drugName")
    gsn = data.get("gsn")
    if name and gsn is not None:
        raise ValidationError("Provide exactly one of drugName or gsn.")
    query = DrugQuery.by_gsn(gsn) if gsn is not None else DrugQuery.by_name(str(name or ""))
    return _resolve(query, data)


@pricing_bp.route("/<string:drug_name>", methods=["GET"])
def get_pricing(drug_name):
    """Prices for a drug by name; query args zipCode/latitude/longitude/radius/quantity."""
    return _resolve(DrugQuery.by_name(drug_name), request.args)


@pricing_bp.route("/gsn/<int:gsn>", methods=["GET"])
def get_pricing_by_gsn(gsn):
    return _resolve(DrugQuery.by_gsn(gsn), request.args)
