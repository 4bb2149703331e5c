"""FastAPI dependencies for bearer authentication and authority checks."""

from typing import Annotated

from fastapi import Depends, HTTPException, Request, status

from taskauth.auth.verifier import Rejected
from taskauth.constants import BEARER_PREFIX
from taskauth.dependencies import AuthSvc
from taskauth.schemas.auth import TokenUser


def unauthenticated() -> HTTPException:
    """The one response every rejection maps to; it never says which check failed."""
    return HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail="Not authenticated",
        headers={"WWW-Authenticate": "Bearer"},
    )


def extract_bearer_token(authorization: str | None) -> str | None:
    """Return the token from an ``Authorization: Bearer <token>`` value, else ``None``."""
    if not authorization or not authorization.startswith(BEARER_PREFIX):
        return None
    token = authorization[len(BEARER_PREFIX) :].strip()
    return token or None


async def get_bearer_token(request: Request) -> str:
    """Extract the bearer token without validating it."""
    token = extract_bearer_token(request.headers.get("Authorization"))
    if token is None:
        raise unauthenticated()
    return token


BearerToken = Annotated[str, Depends(get_bearer_token)]


async def get_current_user(token: BearerToken, service: AuthSvc) -> TokenUser:
    """Validate the access token and return the principal from its claims."""
    result = service.authenticate(token)
    if isinstance(result, Rejected):
        raise unauthenticated()

    claims = result.claims
    return TokenUser(
        id=claims.subject,
        authorities=list(claims.authorities),
        token_id=claims.token_id,
        expires_at=claims.expires_at,
    )


# Convenience type alias
CurrentUser = Annotated[TokenUser, Depends(get_current_user)]


def require_authority(*allowed: str):
    """Dependency factory that requires at least one of *allowed* authorities.

    Usage:
        @router.get("/admin", dependencies=[Depends(require_authority("ROLE_ADMIN"))])
    """
    allowed_set = set(allowed)

    async def _check_authority(current_user: CurrentUser) -> TokenUser:
        if allowed_set.isdisjoint(current_user.authorities):
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN,
                detail="Insufficient permissions",
            )
        return current_user

    return _check_authority
