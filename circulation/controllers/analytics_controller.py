from flask import Blueprint, request, jsonify

from circulation.controllers import int_value, services

analytics_bp = Blueprint("analytics", __name__)


@analytics_bp.get("/summary")
def summary():
    data = services().analytics.get_summary(
        request.args.get("start_date"),
        request.args.get("end_date"),
    )
    return jsonify({"success": True, "data": data})


@analytics_bp.get("/popular-books")
def popular_books():
    data = services().analytics.get_popular_books(
        request.args.get("start_date"),
        request.args.get("end_date"),
        int_value(request.args.get("limit"), "limit", required=False) or 10,
    )
    return jsonify({"success": True, "data": data})
