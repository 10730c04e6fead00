"""FastAPI dependencies: DB session, current user from JWT, collaborators.

SECURITY: Supports JWT from:
1. Authorization header (for API clients)
2. httpOnly cookie (for web frontend)
"""
from typing import Callable, Generator, Optional

from fastapi import Depends, Request
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from sqlalchemy.orm import Session

from invoicely.core.config import settings
from invoicely.core.exceptions import UnauthorizedError
from invoicely.core.security import decode_access_token
from invoicely.db.session import SessionLocal
from invoicely.models.user import User
from invoicely.services.email_service import SendGridMailer, get_mailer
from invoicely.services.pdf_service import InvoiceDocument, render_invoice_pdf
from invoicely.services.user_service import get_active_user

security = HTTPBearer(auto_error=False)


def get_db() -> Generator[Session, None, None]:
    """Get database session."""
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


def get_token_subject(
    request: Request,
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(security),
) -> int:
    """
    Extract user ID from JWT token.
    Header takes precedence over cookie.
    """
    token = None

    if credentials:
        token = credentials.credentials
    elif settings.AUTH_COOKIE_NAME in request.cookies:
        token = request.cookies[settings.AUTH_COOKIE_NAME]

    if not token:
        raise UnauthorizedError("Not authenticated")

    sub = decode_access_token(token)
    if not sub:
        raise UnauthorizedError("Invalid or expired token")

    try:
        return int(sub)
    except ValueError:
        raise UnauthorizedError("Invalid token")


def get_current_user(
    db: Session = Depends(get_db),
    user_id: int = Depends(get_token_subject),
) -> User:
    """Load current user from DB. Deleted or deactivated accounts are rejected."""
    return get_active_user(db, user_id)


def get_current_user_id(current_user: User = Depends(get_current_user)) -> int:
    return current_user.id


def get_invoice_mailer() -> SendGridMailer:
    return get_mailer()


def get_invoice_renderer() -> Callable[[InvoiceDocument], bytes]:
    return render_invoice_pdf
