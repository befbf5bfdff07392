"""
Authentication dependencies.
Resolves the bearer token to a User and to the Actor the access policy works with.
"""
import logging
from typing import Callable, List

from fastapi import Depends
from fastapi.security import OAuth2PasswordBearer
from sqlalchemy.orm import Session

from onboarding_hub.core.exceptions import AccessDeniedError, AuthenticationError
from onboarding_hub.core.security import decode_access_token
from onboarding_hub.database import get_db
from onboarding_hub.models.user import User, UserRole
from onboarding_hub.services.access_policy import Actor

logger = logging.getLogger(__name__)

oauth2_scheme = OAuth2PasswordBearer(tokenUrl="/api/auth/login")


def get_current_user(token: str = Depends(oauth2_scheme), db: Session = Depends(get_db)) -> User:
    """
    Extracts and validates the current user from the JWT token.
    """
    payload = decode_access_token(token)

    if payload is None:
        logger.warning("Authentication failed: Invalid token")
        raise AuthenticationError("Could not validate credentials")

    if payload.get("error") == "TOKEN_EXPIRED":
        logger.info("Authentication failed: Token expired")
        raise AuthenticationError("TOKEN_EXPIRED")

    if payload.get("type") != "access":
        logger.warning("Authentication failed: Invalid token type")
        raise AuthenticationError("Invalid token type")

    subject = payload.get("sub")
    if subject is None or not str(subject).isdigit():
        logger.warning("Authentication failed: Missing or malformed subject in token")
        raise AuthenticationError("Missing subject in token")

    user = db.get(User, int(subject))
    if user is None:
        logger.warning(f"Authentication failed: User {subject} not found in database")
        raise AuthenticationError("User not found")
    if not user.is_active:
        logger.warning(f"Authentication failed: User {subject} is inactive")
        raise AuthenticationError("User account is deactivated")
    return user


def get_current_actor(current_user: User = Depends(get_current_user)) -> Actor:
    return Actor(id=current_user.id, role=current_user.role)


def require_role(allowed_roles: List[UserRole]) -> Callable:
    """
    Dependency factory that checks if the user has one of the allowed roles.

    Usage:
        @router.post("/completions/redeliver")
        def redeliver(actor: Actor = Depends(require_role([UserRole.ADMIN]))):
            ...
    """
    def role_checker(actor: Actor = Depends(get_current_actor)) -> Actor:
        if actor.role not in allowed_roles:
            raise AccessDeniedError(f"Access denied. Required roles: {[r.value for r in allowed_roles]}")
        return actor
    return role_checker


def require_hr():
    """Shorthand for requiring an HR or admin role."""
    return require_role([UserRole.ADMIN, UserRole.HR])


def require_admin():
    """Shorthand for requiring the admin role."""
    return require_role([UserRole.ADMIN])
