from flask import Blueprint, jsonify, request

from ..auth import Identity, Realm, identity_required
from ..errors import json_endpoint
from ..users import UserService, serialize_user
from . import request_payload


def create_users_blueprint(users: UserService, user_realm: Realm) -> Blueprint:
    bp = Blueprint("users", __name__, url_prefix="/api/users")

    @bp.route("/signup", methods=["POST"])
    @json_endpoint
    def signup():
        users.signup(
            request_payload(),
            image_file=request.files.get("profilePic"),
            host_url=request.host_url,
        )
        return (
            jsonify(
                {
                    "success": True,
                    "message": "Signup successful! Please check your email to verify your account.",
                }
            ),
            201,
        )

    @bp.route("/verify/<token>", methods=["GET"])
    @json_endpoint
    def verify_email(token: str):
        newly_verified = users.verify_email(token)
        message = "Email verified successfully" if newly_verified else "Already verified"
        return jsonify({"success": True, "message": message})

    @bp.route("/resend-verification", methods=["POST"])
    @json_endpoint
    def resend_verification():
        users.resend_verification(request_payload().get("email"))
        return jsonify(
            {
                "success": True,
                "message": "A new verification link has been sent to your email.",
            }
        )

    @bp.route("/login", methods=["POST"])
    @json_endpoint
    def login():
        token, user = users.login(request_payload())
        return jsonify(
            {
                "success": True,
                "message": "Login successful!",
                "token": token,
                "user": serialize_user(user),
            }
        )

    @bp.route("/profile", methods=["GET"])
    @json_endpoint
    @identity_required(user_realm)
    def profile(identity: Identity):
        user = users.profile(identity.id)
        return jsonify({"success": True, "user": serialize_user(user)})

    @bp.route("/update-profile-pic", methods=["PUT"])
    @json_endpoint
    @identity_required(user_realm)
    def update_profile_pic(identity: Identity):
        user = users.update_profile_picture(
            identity.id, request.files.get("profilePic"), request.host_url
        )
        return jsonify(
            {
                "success": True,
                "message": "Profile picture updated successfully!",
                "user": serialize_user(user),
            }
        )

    return bp
