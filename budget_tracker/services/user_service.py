"""
User Service — sign-up, password login, password change.
"""

from datetime import datetime, timezone

from email_validator import EmailNotValidError, validate_email

from budget_tracker.core.exceptions import AuthError, ValidationError
from budget_tracker.models import db
from budget_tracker.models.auth import User
from budget_tracker.utils.crypto import hash_password, verify_password

MIN_PASSWORD_LENGTH = 6


def _normalize_email(email: str) -> str:
    try:
        valid = validate_email((email or "").strip(), check_deliverability=False)
    except EmailNotValidError as e:
        raise ValidationError(f"Invalid email: {e}", details={"email": str(e)})
    return valid.normalized.lower()


def _check_password_policy(password: str, confirm: str | None = None) -> None:
    if not password or len(password) < MIN_PASSWORD_LENGTH:
        raise ValidationError(
            f"รหัสผ่านใหม่ต้องมีความยาวอย่างน้อย {MIN_PASSWORD_LENGTH} ตัวอักษร",
            details={"password": "too_short"},
        )
    if confirm is not None and password != confirm:
        raise ValidationError("รหัสผ่านไม่ตรงกัน", details={"confirm_password": "mismatch"})


# ═══════════════════════════════════════════════════════════════
# Lookups
# ═══════════════════════════════════════════════════════════════
def get_user_by_id(user_id: str) -> User | None:
    return db.session.get(User, user_id)


def get_user_by_email(email: str) -> User | None:
    return User.query.filter_by(email=(email or "").strip().lower()).first()


# ═══════════════════════════════════════════════════════════════
# Sign-up / sign-in
# ═══════════════════════════════════════════════════════════════
def create_user(email: str, password: str) -> User:
    """Register a new user. Raises ValidationError / AuthError."""
    email = _normalize_email(email)
    _check_password_policy(password)

    if get_user_by_email(email):
        raise AuthError("User already registered", 409)

    user = User(email=email, password_hash=hash_password(password), status="active")
    db.session.add(user)
    db.session.commit()
    return user


def authenticate_user(email: str, password: str) -> User:
    """Authenticate a user with email + password. Returns User on success."""
    user = get_user_by_email(email)
    if not user or not verify_password(password or "", user.password_hash):
        raise AuthError("Invalid login credentials", 401)

    if user.status != "active":
        raise AuthError(f"Account is {user.status}", 403)

    user.last_login_at = datetime.now(timezone.utc)
    db.session.commit()
    return user


def change_user_password(user_id: str, new_password: str, confirm_password: str | None = None) -> User:
    """Set a new password for an authenticated user."""
    _check_password_policy(new_password, confirm_password)

    user = get_user_by_id(user_id)
    if not user:
        raise AuthError("User not found", 404)

    user.password_hash = hash_password(new_password)
    db.session.commit()
    return user
