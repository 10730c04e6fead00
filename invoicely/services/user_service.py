"""Accounts: registration, password login, identity-provider login, profile."""
import logging
from datetime import datetime, timezone
from typing import Any, Dict

from sqlalchemy import or_
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from invoicely.core.config import settings
from invoicely.core.exceptions import ConflictError, UnauthorizedError, ValidationError
from invoicely.core.security import get_password_hash, verify_password
from invoicely.models.user import User
from invoicely.schemas.user import PasswordChange, ProfileUpdate, UserCreate

logger = logging.getLogger(__name__)


def check_password_policy(password: str) -> None:
    if len(password) < settings.MIN_PASSWORD_LENGTH:
        raise ValidationError(f"Password must be at least {settings.MIN_PASSWORD_LENGTH} characters")
    if settings.REQUIRE_NUMBERS and not any(c.isdigit() for c in password):
        raise ValidationError("Password must contain at least one number")


def register_user(db: Session, data: UserCreate) -> User:
    email = str(data.email).lower()
    existing = db.query(User).filter(or_(User.email == email, User.username == data.username)).first()
    if existing:
        raise ConflictError("User with this email or username already exists")

    check_password_policy(data.password)

    user = User(
        username=data.username,
        email=email,
        hashed_password=get_password_hash(data.password),
        last_login=datetime.now(timezone.utc),
    )
    db.add(user)
    try:
        db.commit()
    except IntegrityError:
        # Lost a race with a concurrent registration
        db.rollback()
        raise ConflictError("User with this email or username already exists")
    db.refresh(user)
    return user


def authenticate_user(db: Session, email: str, password: str) -> User:
    """Generic failure: don't reveal which field was wrong."""
    user = db.query(User).filter(User.email == email.lower()).first()
    if not user or not user.is_active or not verify_password(password, user.hashed_password):
        raise UnauthorizedError("Invalid email or password")
    user.last_login = datetime.now(timezone.utc)
    db.commit()
    db.refresh(user)
    return user


def get_active_user(db: Session, user_id: int) -> User:
    user = db.query(User).filter(User.id == user_id).first()
    if not user or not user.is_active:
        raise UnauthorizedError("User not found")
    return user


def update_profile(db: Session, user: User, data: ProfileUpdate) -> User:
    if data.username is not None:
        username = data.username.strip()
        if not username:
            raise ValidationError("Username is required")
        taken = db.query(User.id).filter(User.username == username, User.id != user.id).first()
        if taken:
            raise ConflictError("Username already taken")
        user.username = username
    if data.company_name is not None:
        user.company_name = data.company_name
    if data.picture is not None:
        user.picture = data.picture
    if data.logo is not None:
        user.logo = data.logo or None
    if data.signature is not None:
        user.signature = data.signature or None
    db.commit()
    db.refresh(user)
    return user


def change_password(db: Session, user: User, data: PasswordChange) -> None:
    if not verify_password(data.current_password, user.hashed_password):
        raise UnauthorizedError("Current password is incorrect")
    check_password_policy(data.new_password)
    user.hashed_password = get_password_hash(data.new_password)
    db.commit()


def _unique_username(db: Session, base: str) -> str:
    base = (base or "user").strip()[:120] or "user"
    candidate = base
    suffix = 1
    while db.query(User.id).filter(User.username == candidate).first():
        suffix += 1
        candidate = f"{base}{suffix}"
    return candidate


def get_or_create_idp_user(db: Session, claims: Dict[str, Any]) -> User:
    """
    Resolve identity-provider claims to a local user.

    Order: linked subject, then existing account with the same email
    (which gets linked), else a new password-less account.
    """
    subject = claims.get("sub")
    if not subject:
        raise UnauthorizedError("Identity token has no subject")

    user = db.query(User).filter(User.idp_subject == subject).first()
    email = (claims.get("email") or "").lower()

    if not user and email:
        user = db.query(User).filter(User.email == email).first()
        if user:
            user.idp_subject = subject
            logger.info(f"[Auth] Linked identity-provider subject to user {user.id}")

    if not user:
        if not email:
            raise UnauthorizedError("Identity token has no email")
        user = User(
            username=_unique_username(db, claims.get("nickname") or claims.get("name") or email.split("@")[0]),
            email=email,
            idp_subject=subject,
            picture=claims.get("picture"),
            is_active=True,
        )
        db.add(user)

    if not user.is_active:
        raise UnauthorizedError("Account disabled")

    user.last_login = datetime.now(timezone.utc)
    db.commit()
    db.refresh(user)
    return user
