from flask import Blueprint, jsonify, request

from ..auth import Identity, Realm, identity_required
from ..errors import json_endpoint
from ..orders import OrderService, serialize_order, summarize_order
from . import request_payload


def create_orders_blueprint(
    orders: OrderService, user_realm: Realm, admin_realm: Realm
) -> Blueprint:
    bp = Blueprint("orders", __name__, url_prefix="/api/orders")

    @bp.route("", methods=["POST"])
    @json_endpoint
    @identity_required(user_realm)
    def create_order(identity: Identity):
        order = orders.create(identity.id, request_payload())
        return (
            jsonify(
                {
                    "success": True,
                    "message": "Order saved successfully!",
                    "order": serialize_order(order),
                }
            ),
            201,
        )

    @bp.route("/my", methods=["GET"])
    @json_endpoint
    @identity_required(user_realm)
    def my_orders(identity: Identity):
        documents = orders.list_for_user(identity.id)
        return jsonify(
            {"success": True, "orders": [serialize_order(order) for order in documents]}
        )

    # Listing every order is an admin capability, same as GET /api/admin/.
    @bp.route("", methods=["GET"])
    @json_endpoint
    @identity_required(admin_realm)
    def all_orders(identity: Identity):
        return jsonify({"success": True, "orders": orders.list_all()})

    @bp.route("/track/<path:payment_ref>", methods=["GET"])
    @json_endpoint
    def track_order(payment_ref: str):
        order = orders.track(payment_ref)
        return jsonify({"success": True, "order": serialize_order(order)})

    @bp.route("/track", methods=["POST"])
    @json_endpoint
    def track_by_email():
        payload = request_payload()
        order = orders.track_by_email_and_ref(
            payload.get("email"), payload.get("paymentRef")
        )
        return jsonify({"success": True, "order": summarize_order(order)})

    @bp.route("/user-orders", methods=["GET"])
    @json_endpoint
    def user_orders():
        documents = orders.lookup_by_email(
            request.args.get("email"), request.args.get("paymentRef")
        )
        return jsonify(
            {"success": True, "orders": [serialize_order(order) for order in documents]}
        )

    @bp.route("/<order_id>", methods=["GET"])
    @json_endpoint
    def order_detail(order_id: str):
        order = orders.get(order_id)
        return jsonify({"success": True, "order": serialize_order(order)})

    return bp
