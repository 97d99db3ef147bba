"""
Authentication service.

Uses bcrypt for password hashing and validates password strength.

- Passwords hashed with bcrypt (cost factor from BCRYPT_ROUNDS, default 12)
- Minimum 8 characters, upper, lower, digit and special char required
- Session tokens managed separately (see session_service.py)
"""

import re

import bcrypt
from flask import current_app

from ..extensions import db
from ..models import User
from ..models.enums import Role, OperatorStatus
from ..validation import ValidationError, ConflictError, normalize_email, require_text
from riverline.time_utils import utcnow


class PasswordValidationError(ValidationError):
    """Raised when password doesn't meet strength requirements."""
    pass


def validate_password_strength(password: str) -> None:
    """
    Raises PasswordValidationError unless the password has 8+ characters, an
    uppercase letter, a lowercase letter, a digit and a special character.
    """
    if not isinstance(password, str) or len(password) < 8:
        raise PasswordValidationError("Password must be at least 8 characters long", code="WEAK_PASSWORD")

    if not re.search(r'[A-Z]', password):
        raise PasswordValidationError("Password must contain at least one uppercase letter", code="WEAK_PASSWORD")

    if not re.search(r'[a-z]', password):
        raise PasswordValidationError("Password must contain at least one lowercase letter", code="WEAK_PASSWORD")

    if not re.search(r'\d', password):
        raise PasswordValidationError("Password must contain at least one digit", code="WEAK_PASSWORD")

    if not re.search(r"[!@#$%^&*(),.'\":{}|<>_\-]", password):
        raise PasswordValidationError("Password must contain at least one special character", code="WEAK_PASSWORD")


def hash_password(password: str) -> str:
    """Validate strength, then bcrypt-hash with the configured cost factor."""
    validate_password_strength(password)
    rounds = int(current_app.config.get("BCRYPT_ROUNDS", 12))
    salt = bcrypt.gensalt(rounds=rounds)
    hashed = bcrypt.hashpw(password.encode('utf-8'), salt)
    return hashed.decode('utf-8')  # Store as string in database


def verify_password(password: str, password_hash: str) -> bool:
    """
    Verify password against bcrypt hash.

    A malformed stored hash counts as a mismatch.
    """
    if not password or not password_hash:
        return False
    try:
        return bcrypt.checkpw(password.encode('utf-8'), password_hash.encode('utf-8'))
    except ValueError:
        return False


def create_user(
    username: str,
    email: str,
    password: str,
    role: Role | str = Role.VENDEDOR,
    first_name: str = "",
    last_name: str = "",
) -> User:
    """
    Create new user with bcrypt password hashing.

    Raises:
        ValidationError: bad username/email/role, or weak password
        ConflictError: username or email already taken
    """
    username = require_text(username, "username", min_length=3, max_length=64)
    email = normalize_email(email)
    if not email:
        raise ValidationError("email is required", details={"field": "email"})
    try:
        role = Role(role)
    except ValueError:
        raise ValidationError(f"Invalid role: {role}", details={"field": "role"})

    existing = db.session.query(User).filter(
        db.or_(db.func.lower(User.username) == username.lower(), User.email == email)
    ).first()
    if existing:
        raise ConflictError("Username or email already exists", code="USER_EXISTS")

    # Hash password with bcrypt (validates strength automatically)
    password_hash = hash_password(password)

    user = User(
        username=username,
        email=email,
        password_hash=password_hash,
        first_name=(first_name or "").strip(),
        last_name=(last_name or "").strip(),
        role=role,
        is_active=True,
    )
    if role == Role.OPERADOR_EMBARCACION:
        user.operator_status = OperatorStatus.INACTIVO

    db.session.add(user)
    db.session.commit()
    return user


def authenticate(username: str, password: str) -> User | None:
    """
    Authenticate by username or email.

    Returns the User on success (and stamps last_login_at), None otherwise.
    """
    if not username or not password:
        return None

    user = db.session.query(User).filter(
        db.or_(User.username == username, User.email == str(username).lower()),
        User.is_active.is_(True),
    ).first()

    if not user or not verify_password(password, user.password_hash):
        return None

    user.last_login_at = utcnow()
    db.session.commit()
    return user


def list_users(role: Role | None = None) -> list[User]:
    query = db.session.query(User)
    if role is not None:
        query = query.filter(User.role == role)
    return query.order_by(User.username.asc()).all()
