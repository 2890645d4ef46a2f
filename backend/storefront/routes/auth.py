# Overview: Flask API routes for auth operations; parses input and returns JSON responses.

# backend/storefront/routes/auth.py
"""
Authentication API routes

- Login by username or phone with password, returns an opaque bearer token
- Logout revokes the presented token
- /me returns the current account
- Customers register themselves by phone, then maintain their shop profile
- Password change revokes every other session

Login is throttled per identifier: too many failures lock it for a while (429).
Workers and admins are created by admins (CLI: flask users create).
"""

from flask import Blueprint, request, jsonify, current_app, g

from ..errors import ServiceError
from ..validation import json_object
from ..services import auth_service
from ..services import session_service
from ..services import throttle_service
from ..decorators import require_auth
from ..time_utils import to_utc_z


auth_bp = Blueprint("auth", __name__, url_prefix="/api/auth")


@auth_bp.post("/login")
def login_route():
    """
    Authenticate user and create session token.

    Request body:
    {
        "username": "shop42",   // or "phone"
        "password": "..."
    }

    Token must be included in the Authorization header for protected routes.
    """
    try:
        data = json_object(request.get_json(silent=True))
        identifier = data.get("username") or data.get("phone") or data.get("identifier")
        password = data.get("password")

        if not all([identifier, password]):
            return jsonify({"error": "username/phone and password required"}), 400
        if not isinstance(identifier, str) or not isinstance(password, str):
            return jsonify({"error": "username/phone and password must be strings"}), 400

        # Check if account is locked due to too many failed attempts
        is_locked, seconds_remaining = throttle_service.is_account_locked(identifier)
        if is_locked:
            return jsonify({
                "error": "Account temporarily locked due to too many failed login attempts",
                "locked": True,
                "retry_after_seconds": seconds_remaining,
                "retry_after_minutes": (seconds_remaining // 60) + 1,
            }), 429, {"Retry-After": str(seconds_remaining)}

        user = auth_service.authenticate(identifier, password)
        if not user:
            current_app.logger.warning("Failed login for %s from %s", identifier, request.remote_addr)
            failed_count = throttle_service.record_failed_attempt(identifier)
            remaining = throttle_service.MAX_FAILED_ATTEMPTS - failed_count

            if failed_count and remaining <= 0:
                lockout_minutes = int(throttle_service.LOCKOUT_DURATION.total_seconds() // 60)
                return jsonify({
                    "error": "Account locked due to too many failed login attempts",
                    "locked": True,
                    "retry_after_minutes": lockout_minutes,
                }), 429
            if failed_count and remaining <= 3:
                return jsonify({
                    "error": "Invalid credentials",
                    "warning": f"{remaining} attempts remaining before account lockout",
                }), 401
            return jsonify({"error": "Invalid credentials"}), 401

        throttle_service.record_successful_login(identifier)

        session, token = session_service.create_session(
            user,
            user_agent=request.headers.get("User-Agent"),
            ip_address=request.remote_addr,
        )

        return jsonify({
            "user": user.to_dict(),
            "token": token,
            "expires_at": to_utc_z(session.expires_at),
            "message": "Login successful",
        }), 200

    except ServiceError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        current_app.logger.exception("Failed to login user")
        return jsonify({"error": "Internal server error"}), 500


@auth_bp.post("/register")
def register_route():
    """
    Customer self-registration.

    Request body:
    {
        "phone": "09120000000",     // +98 and bare forms are normalized
        "password": "...",
        "confirm_password": "..."
    }

    Returns:
        201: Account created (log in to get a token)
        400: Missing fields, bad phone, mismatch or weak password
        409: Phone already registered
    """
    try:
        data = json_object(request.get_json(silent=True))
        phone = data.get("phone")
        password = data.get("password")
        confirm_password = data.get("confirm_password")

        if not all([phone, password, confirm_password]):
            return jsonify({"error": "phone, password and confirm_password required"}), 400
        if not all(isinstance(v, str) for v in (phone, password, confirm_password)):
            return jsonify({"error": "phone and passwords must be strings"}), 400

        user = auth_service.register_customer(phone, password, confirm_password)
        return jsonify({"user": user.to_dict()}), 201

    except ServiceError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        current_app.logger.exception("Failed to register user")
        return jsonify({"error": "Internal server error"}), 500


@auth_bp.post("/logout")
@require_auth
def logout_route():
    """Revoke the session token used for this request."""
    try:
        session_service.revoke_session(g.session_token)
        return jsonify({"message": "Logout successful"}), 200

    except Exception:
        current_app.logger.exception("Failed to logout user")
        return jsonify({"error": "Internal server error"}), 500


@auth_bp.get("/me")
@require_auth
def me_route():
    return jsonify({"user": g.current_user.to_dict()}), 200


@auth_bp.put("/profile")
@require_auth
def update_profile_route():
    """
    Replace the current user's shop profile.

    Request body:
    {
        "name": "...", "shop_name": "...", "shop_address": "...",
        "latitude": 35.7, "longitude": 51.4      (optional, together)
    }
    """
    try:
        payload = json_object(request.get_json(silent=True))
        user = auth_service.update_profile(g.current_user, payload)
        return jsonify({"user": user.to_dict()}), 200

    except ServiceError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        current_app.logger.exception("Failed to update profile")
        return jsonify({"error": "Internal server error"}), 500


@auth_bp.post("/change-password")
@require_auth
def change_password_route():
    """
    Request body: {"current_password": "...", "new_password": "..."}

    Returns:
        200: Password changed; other sessions revoked, this one stays valid
        400: Missing fields or weak new password
        403: Current password incorrect
    """
    try:
        data = json_object(request.get_json(silent=True))
        current_password = data.get("current_password")
        new_password = data.get("new_password")

        if not all([current_password, new_password]):
            return jsonify({"error": "current_password and new_password required"}), 400
        if not isinstance(current_password, str) or not isinstance(new_password, str):
            return jsonify({"error": "passwords must be strings"}), 400

        revoked = auth_service.change_password(
            g.current_user, current_password, new_password, keep_token=g.session_token,
        )
        return jsonify({"message": "Password updated successfully", "revoked_sessions": revoked}), 200

    except ServiceError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        current_app.logger.exception("Failed to change password")
        return jsonify({"error": "Internal server error"}), 500
