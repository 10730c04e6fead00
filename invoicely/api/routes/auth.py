"""Auth: register, login, logout, profile, identity-provider login.

SECURITY FEATURES:
- Password hashing with bcrypt
- Password policy validation
- httpOnly, SameSite cookies (Secure in production)
"""
import jwt
from fastapi import APIRouter, Depends, Request, Response, status
from sqlalchemy.orm import Session

from invoicely.api.deps import get_current_user, get_db
from invoicely.core.audit import AuditLog
from invoicely.core.config import settings
from invoicely.core.exceptions import UnauthorizedError
from invoicely.core.security import create_access_token, verify_idp_token
from invoicely.models.user import User
from invoicely.schemas.user import IdpSession, PasswordChange, ProfileUpdate, Token, UserCreate, UserLogin, UserResponse
from invoicely.services import user_service

router = APIRouter()


def _client_ip(request: Request) -> str:
    return request.client.host if request.client else "unknown"


def _issue_session(response: Response, user: User) -> Token:
    token = create_access_token(subject=str(user.id))
    response.set_cookie(
        key=settings.AUTH_COOKIE_NAME,
        value=token,
        max_age=settings.ACCESS_TOKEN_EXPIRE_MINUTES * 60,  # seconds
        secure=settings.SECURE_COOKIES,  # HTTPS only in production
        httponly=True,  # Prevent JavaScript access (XSS protection)
        samesite=settings.SAME_SITE_COOKIE,
        path="/",
    )
    return Token(access_token=token, user=UserResponse.model_validate(user))


@router.post("/register", response_model=Token, status_code=status.HTTP_201_CREATED)
def register(data: UserCreate, request: Request, response: Response, db: Session = Depends(get_db)):
    """
    Register a new user and start a session.

    Password requirements:
    - Minimum 8 characters
    - At least one number
    """
    user = user_service.register_user(db, data)
    AuditLog.log_authentication("register", user.email, _client_ip(request), True)
    return _issue_session(response, user)


@router.post("/login", response_model=Token)
def login(data: UserLogin, request: Request, response: Response, db: Session = Depends(get_db)):
    """
    Login and set the session cookie.

    Generic error message to prevent user enumeration.
    """
    try:
        user = user_service.authenticate_user(db, str(data.email), data.password)
    except UnauthorizedError:
        AuditLog.log_authentication("login", str(data.email), _client_ip(request), False, reason="Invalid credentials")
        raise
    AuditLog.log_authentication("login", user.email, _client_ip(request), True)
    return _issue_session(response, user)


@router.post("/idp-session", response_model=Token)
def idp_session(data: IdpSession, request: Request, response: Response, db: Session = Depends(get_db)):
    """
    Exchange an identity-provider ID token for our session cookie.
    The token is verified against the provider's published signing keys.
    """
    if not settings.AUTH0_DOMAIN:
        raise UnauthorizedError("Identity provider login is not configured")
    try:
        claims = verify_idp_token(data.id_token)
    except jwt.PyJWTError as e:
        AuditLog.log_authentication("idp_login", "", _client_ip(request), False, reason=type(e).__name__)
        raise UnauthorizedError("Invalid identity token")

    user = user_service.get_or_create_idp_user(db, claims)
    AuditLog.log_authentication("idp_login", user.email, _client_ip(request), True)
    return _issue_session(response, user)


@router.post("/logout")
def logout(request: Request, response: Response):
    """Clear the session cookie. Works even with an expired session."""
    response.delete_cookie(
        key=settings.AUTH_COOKIE_NAME,
        path="/",
        secure=settings.SECURE_COOKIES,
        httponly=True,
        samesite=settings.SAME_SITE_COOKIE,
    )
    AuditLog.log_authentication("logout", "", _client_ip(request), True)
    return {"message": "Logged out successfully"}


@router.get("/me", response_model=UserResponse)
def me(current_user: User = Depends(get_current_user)):
    """Get current authenticated user."""
    return UserResponse.model_validate(current_user)


@router.put("/profile", response_model=UserResponse)
def update_profile(
    data: ProfileUpdate,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    user = user_service.update_profile(db, current_user, data)
    AuditLog.log_action("update", "user", user.id, user.id, changes=data.model_dump(exclude_none=True, exclude={"logo", "signature"}))
    return UserResponse.model_validate(user)


@router.put("/password")
def change_password(
    data: PasswordChange,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    user_service.change_password(db, current_user, data)
    AuditLog.log_security_event("password_changed", current_user.id)
    return {"message": "Password updated successfully"}
