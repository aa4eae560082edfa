from flask import Blueprint, jsonify

from ..admins import AdminService
from ..auth import Identity, Realm, identity_required
from ..errors import json_endpoint
from ..orders import OrderService, serialize_order
from . import request_payload


def create_admin_blueprint(
    admins: AdminService, orders: OrderService, admin_realm: Realm
) -> Blueprint:
    bp = Blueprint("admin", __name__, url_prefix="/api/admin")

    # Setup-only: provisions the account configured by ADMIN_EMAIL/ADMIN_PASSWORD.
    @bp.route("/create-admin", methods=["GET"])
    @json_endpoint
    def create_admin():
        admin, created = admins.provision()
        if not created:
            return jsonify(
                {"success": True, "message": "Admin already exists", "email": admin["email"]}
            )
        return (
            jsonify({"success": True, "message": "Admin created", "email": admin["email"]}),
            201,
        )

    @bp.route("/login", methods=["POST"])
    @json_endpoint
    def login():
        token, admin = admins.login(request_payload())
        return jsonify(
            {
                "success": True,
                "message": "Login successful!",
                "token": token,
                "admin": {"id": str(admin["_id"]), "email": admin["email"]},
            }
        )

    @bp.route("/", methods=["GET"])
    @json_endpoint
    @identity_required(admin_realm)
    def list_orders(identity: Identity):
        return jsonify({"success": True, "orders": orders.list_all()})

    @bp.route("/orders/<order_id>/status", methods=["PUT"])
    @json_endpoint
    @identity_required(admin_realm)
    def update_order_status(identity: Identity, order_id: str):
        order = orders.update_status(order_id, request_payload().get("status"))
        return jsonify(
            {
                "success": True,
                "message": "Order status updated",
                "order": serialize_order(order),
            }
        )

    return bp
