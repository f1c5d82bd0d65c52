"""
Drug lookup routes – name autocomplete and GSN lookup.
"""

from flask import Blueprint, current_app, jsonify, request

from rxcompare.errors import ValidationError

drugs_bp = Blueprint("drugs", __name__)


@drugs_bp.route("/autocomplete", methods=["GET"])
def autocomplete_drugs():
    """Up to `count` drug names starting with `q` (at least 3 characters)."""
    q = request.args.get("q", "").strip()
    try:
        count = int(request.args.get("count", 10))
    except ValueError:
        raise ValidationError("'count' must be an integer.")
    search = current_app.extensions["rxcompare"]["search"]
    return jsonify(search.autocomplete(q, count)), 200


@drugs_bp.route("/gsn/<string:drug_name>", methods=["GET"])
def get_gsn(drug_name):
    search = current_app.extensions["rxcompare"]["search"]
    found = search.find_gsn(drug_name)
    if not found:
        return jsonify({"error": f"No GSN found for drug '{drug_name}'."}), 404
    return jsonify(found), 200
