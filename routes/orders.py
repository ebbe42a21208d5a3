"""
Order fulfillment routes (JSON).

Handles:
- GET /api/orders/<order_id>/remaining - Ordered / exported / remaining per product
"""

from flask import Blueprint, current_app, jsonify

from logging_config import get_logger


# Module logger
logger = get_logger(__name__)

orders_bp = Blueprint("orders", __name__, url_prefix="/api/orders")


@orders_bp.route("/<order_id>/remaining", methods=["GET"])
def remaining_quantities(order_id: str):
    """
    Remaining quantity per product of an order.

    Always recomputed from the backend. A failed computation answers 502
    with the reason so the UI never shows "nothing allocated" by mistake.
    """
    tracker = current_app.config["IMPORT_TRACKER"]
    report = tracker.compute_remaining_quantities(order_id)

    body = report.to_dict()
    body["message"] = report.error
    body["error"] = not report.ok

    if not report.ok:
        logger.warning(f"Remaining quantities unavailable for order {order_id}: {report.error}")
        return jsonify(body), 502

    return jsonify(body)
