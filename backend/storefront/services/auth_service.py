# Overview: Service-layer operations for auth; encapsulates business logic and database work.

"""
Authentication Service

WHY: Every order, payment and status change must be attributable to an
account. Uses bcrypt for password hashing and validates password strength.

SECURITY NOTES:
- Passwords hashed with bcrypt (cost factor from BCRYPT_ROUNDS, default 12)
- Minimum 8 characters, mixed case, digit and special character
- Session tokens managed separately (see session_service.py)
"""

import bcrypt
import re
from flask import current_app

from ..extensions import db
from ..errors import ConflictError, ForbiddenError, ValidationError
from ..models import User
from ..models.auth import VALID_ROLES, ROLE_CUSTOMER
from ..time_utils import utcnow
from ..validation import USER_PROFILE_POLICY, enforce_rules_user, validate_payload
from . import session_service


class PasswordValidationError(ValidationError):
    """Raised when password doesn't meet strength requirements."""
    pass


def validate_password_strength(password: str) -> None:
    """
    Validate password meets strength requirements.

    Raises PasswordValidationError if requirements not met.
    """
    if len(password) < 8:
        raise PasswordValidationError("Password must be at least 8 characters long")

    if not re.search(r'[A-Z]', password):
        raise PasswordValidationError("Password must contain at least one uppercase letter")

    if not re.search(r'[a-z]', password):
        raise PasswordValidationError("Password must contain at least one lowercase letter")

    if not re.search(r'\d', password):
        raise PasswordValidationError("Password must contain at least one digit")

    if not re.search(r"[!@#$%^&*(),.'\":{}|<>]", password):
        raise PasswordValidationError("Password must contain at least one special character")


def hash_password(password: str) -> str:
    """Validate strength, then hash with bcrypt."""
    validate_password_strength(password)
    salt = bcrypt.gensalt(rounds=current_app.config.get("BCRYPT_ROUNDS", 12))
    hashed = bcrypt.hashpw(password.encode('utf-8'), salt)
    return hashed.decode('utf-8')


def verify_password(password: str, password_hash: str) -> bool:
    """Timing-safe bcrypt comparison. Malformed hashes never match."""
    try:
        return bcrypt.checkpw(password.encode('utf-8'), password_hash.encode('utf-8'))
    except ValueError:
        return False


def create_user(
    username: str,
    password: str,
    role: str = ROLE_CUSTOMER,
    phone: str | None = None,
    **profile,
) -> User:
    """
    Create a user account.

    Args:
        username: Unique login name
        password: Password meeting strength requirements
        role: CUSTOMER, WORKER or ADMIN
        phone: Unique phone number (optional)
        profile: name, shop_name, shop_address, latitude, longitude

    Raises:
        ValidationError: Unknown role or weak password
        ConflictError: Username or phone already taken
    """
    if role not in VALID_ROLES:
        raise ValidationError(f"role must be one of {', '.join(VALID_ROLES)}")

    existing = db.session.query(User).filter(
        db.or_(User.username == username, db.and_(User.phone.isnot(None), User.phone == phone))
    ).first()
    if existing:
        raise ConflictError("Username or phone already exists")

    user = User(
        username=username,
        phone=phone,
        password_hash=hash_password(password),
        role=role,
        **profile,
    )

    db.session.add(user)
    db.session.commit()
    return user


def authenticate(identifier: str, password: str) -> User | None:
    """
    Authenticate by username or phone.

    Returns the active User when the password matches, None otherwise.
    Updates last_login_at on success.
    """
    user = db.session.query(User).filter(
        db.or_(User.username == identifier, User.phone == identifier),
        User.is_active.is_(True),
    ).first()

    if not user:
        return None

    if verify_password(password, user.password_hash):
        user.last_login_at = utcnow()
        db.session.commit()
        return user

    return None


# =============================================================================
# SELF-SERVICE
# =============================================================================

def normalize_phone(phone: str) -> str:
    """
    Local 11-digit form: +98912... and 912... both become 0912...

    Raises:
        ValidationError: not a mobile number once normalized
    """
    phone = re.sub(r"[\s-]", "", phone or "")
    if phone.startswith("+98"):
        phone = "0" + phone[3:]
    elif not phone.startswith("0"):
        phone = "0" + phone

    if len(phone) != 11 or not phone.isdigit():
        raise ValidationError("Invalid phone number format")
    return phone


def register_customer(phone: str, password: str, confirm_password: str) -> User:
    """
    Customer self-registration by phone.

    The normalized phone doubles as the username. Shop details and
    coordinates are filled in later through the profile.

    Raises:
        ValidationError: bad phone, passwords differ, or weak password
        ConflictError: phone already registered
    """
    if password != confirm_password:
        raise ValidationError("Passwords do not match")

    normalized = normalize_phone(phone)
    user = create_user(normalized, password, role=ROLE_CUSTOMER, phone=normalized)
    current_app.logger.info("Customer %s registered", user.id)
    return user


def update_profile(user: User, payload: dict) -> User:
    """
    Replace the shop profile of the current user.

    name, shop_name and shop_address are required; latitude and longitude
    are optional and make the shop eligible for delivery routing.
    """
    patch = validate_payload(model=User, payload=payload, policy=USER_PROFILE_POLICY, partial=False)
    enforce_rules_user(patch)

    blank = sorted(f for f in USER_PROFILE_POLICY.required_on_create if not patch.get(f))
    if blank:
        raise ValidationError(f"Required fields cannot be blank: {', '.join(blank)}")

    if (patch.get("latitude") is None) != (patch.get("longitude") is None):
        raise ValidationError("latitude and longitude must be given together")

    for key, value in patch.items():
        setattr(user, key, value)
    db.session.commit()

    current_app.logger.info("User %s updated profile: %s", user.id, ", ".join(sorted(patch)))
    return user


def change_password(user: User, current_password: str, new_password: str, keep_token: str | None = None) -> int:
    """
    Replace the password after checking the current one.

    Every other session of the user is revoked; keep_token stays valid.
    Returns the number of revoked sessions.

    Raises:
        ForbiddenError: current password does not match
        PasswordValidationError: new password too weak
    """
    if not verify_password(current_password, user.password_hash):
        current_app.logger.warning("User %s failed password change: wrong current password", user.id)
        raise ForbiddenError("Incorrect current password")

    user.password_hash = hash_password(new_password)
    db.session.commit()

    revoked = session_service.revoke_all_user_sessions(user.id, keep_token=keep_token)
    current_app.logger.info("User %s changed password; revoked %s other sessions", user.id, revoked)
    return revoked
