# insomnia_fuel/deps.py
from __future__ import annotations

import logging

from fastapi import Depends, HTTPException, Request, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from insomnia_fuel.core.request_context import set_request_context
from insomnia_fuel.payments.base import PaymentGateway
from insomnia_fuel.services.errors import IdentityError
from insomnia_fuel.services.identity import IdentityVerifier, Principal

# Swagger "Authorize" takes the Firebase ID token as a bearer token
bearer_scheme = HTTPBearer(auto_error=False)

logger = logging.getLogger(__name__)


def get_identity_verifier(request: Request) -> IdentityVerifier:
    return request.app.state.identity_verifier


def get_payment_gateway(request: Request) -> PaymentGateway:
    return request.app.state.payment_gateway


def _bind_principal(request: Request, principal: Principal) -> Principal:
    request.state.principal = principal
    set_request_context(user_id=principal.uid)
    return principal


def get_current_principal(
    request: Request,
    credentials: HTTPAuthorizationCredentials | None = Depends(bearer_scheme),
    verifier: IdentityVerifier = Depends(get_identity_verifier),
) -> Principal:
    """Verifies the bearer token and returns the caller."""
    if credentials is None or not credentials.credentials:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Missing token",
            headers={"WWW-Authenticate": "Bearer"},
        )

    try:
        principal = verifier.verify(credentials.credentials)
    except IdentityError as exc:
        logger.info("token rejected: %s", exc)
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Unauthorized",
            headers={"WWW-Authenticate": "Bearer"},
        ) from exc

    return _bind_principal(request, principal)


def get_optional_principal(
    request: Request,
    credentials: HTTPAuthorizationCredentials | None = Depends(bearer_scheme),
    verifier: IdentityVerifier = Depends(get_identity_verifier),
) -> Principal | None:
    if credentials is None or not credentials.credentials:
        return None
    try:
        principal = verifier.verify(credentials.credentials)
    except IdentityError:
        return None
    return _bind_principal(request, principal)


def require_admin(request: Request, principal: Principal = Depends(get_current_principal)) -> Principal:
    if not principal.email:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Missing email")
    if not principal.is_admin:
        logger.warning(
            "Access denied (not admin): uid=%s endpoint=%s %s",
            principal.uid,
            request.method,
            request.url.path,
        )
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Admins only")
    return principal
