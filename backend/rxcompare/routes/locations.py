"""
Location routes – ZIP code to coordinates.
"""

from flask import Blueprint, current_app, jsonify

locations_bp = Blueprint("locations", __name__)


@locations_bp.route("/<string:zip_code>", methods=["GET"])
def get_location(zip_code):
    """Coordinates for a 5-digit ZIP; falls back to a regional approximation."""
    geocoder = current_app.extensions["rxcompare"]["geocoder"]
    return jsonify(geocoder.resolve(zip_code)), 200
