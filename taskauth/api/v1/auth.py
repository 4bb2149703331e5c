"""Authentication API endpoints.

Login is not exposed over HTTP: the user-management side verifies
credentials and calls ``AuthService.login`` itself.  This router covers the
token operations a client performs with tokens it already holds.
"""

from fastapi import APIRouter, Response, status

from taskauth.auth.dependencies import BearerToken, CurrentUser, unauthenticated
from taskauth.auth.verifier import Rejected
from taskauth.dependencies import AuthSvc
from taskauth.schemas.auth import AccessTokenResponse, LogoutRequest, RefreshRequest, TokenUser

router = APIRouter()


@router.post("/refresh", response_model=AccessTokenResponse)
async def refresh_access_token(body: RefreshRequest, service: AuthSvc) -> AccessTokenResponse:
    """Exchange a refresh token for a new access token."""
    result = service.refresh(body.refresh_token)
    if isinstance(result, Rejected):
        raise unauthenticated()
    lifetime = result.claims.expires_at - result.claims.issued_at
    return AccessTokenResponse(
        access_token=result.access_token,
        expires_in=int(lifetime.total_seconds()),
    )


@router.post("/logout", status_code=status.HTTP_204_NO_CONTENT)
async def logout(
    token: BearerToken,
    service: AuthSvc,
    body: LogoutRequest | None = None,
) -> Response:
    """Revoke the bearer token (and the refresh token, if sent).

    Always 204: an expired or unrecognised token has nothing left to revoke.
    """
    service.logout(token, body.refresh_token if body else None)
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@router.get("/me", response_model=TokenUser)
async def get_current_user_info(current_user: CurrentUser) -> TokenUser:
    """Return the authenticated principal from the access-token claims."""
    return current_user
