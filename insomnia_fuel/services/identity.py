from __future__ import annotations

import logging
import re
import threading
import time
from dataclasses import dataclass
from typing import Protocol

import httpx
from jose import JWTError, jwt

from insomnia_fuel.core.config import (
    ADMIN_EMAILS,
    FIREBASE_CERTS_TIMEOUT_SECONDS,
    FIREBASE_CERTS_URL,
    FIREBASE_PROJECT_ID,
)
from insomnia_fuel.services.errors import IdentityError

logger = logging.getLogger(__name__)

DEFAULT_CERTS_MAX_AGE_SECONDS = 3600
_MAX_AGE_RE = re.compile(r"max-age=(\d+)")


@dataclass(frozen=True)
class Principal:
    """Caller identity produced once, after the bearer token is verified."""

    uid: str
    email: str | None = None
    name: str | None = None
    admin_emails: frozenset[str] = ADMIN_EMAILS

    @property
    def is_admin(self) -> bool:
        return bool(self.email) and self.email.lower() in self.admin_emails


class IdentityVerifier(Protocol):
    def verify(self, token: str) -> Principal:
        ...


class FirebaseIdentityVerifier(IdentityVerifier):
    def __init__(
        self,
        project_id: str = FIREBASE_PROJECT_ID,
        *,
        certs_url: str = FIREBASE_CERTS_URL,
        timeout: float = FIREBASE_CERTS_TIMEOUT_SECONDS,
        http_client: httpx.Client | None = None,
    ) -> None:
        self.project_id = project_id
        self.certs_url = certs_url
        self.timeout = timeout
        self._http_client = http_client
        self._certs: dict[str, str] = {}
        self._certs_expire_at = 0.0
        self._lock = threading.Lock()

    def _fetch_certs(self) -> tuple[dict[str, str], int]:
        if self._http_client is not None:
            response = self._http_client.get(self.certs_url, timeout=self.timeout)
        else:
            response = httpx.get(self.certs_url, timeout=self.timeout)
        response.raise_for_status()
        match = _MAX_AGE_RE.search(response.headers.get("cache-control", ""))
        max_age = int(match.group(1)) if match else DEFAULT_CERTS_MAX_AGE_SECONDS
        return response.json(), max_age

    def get_certs(self) -> dict[str, str]:
        with self._lock:
            if self._certs and time.monotonic() < self._certs_expire_at:
                return self._certs
            try:
                certs, max_age = self._fetch_certs()
            except httpx.HTTPError as exc:
                logger.error("failed to fetch identity certificates: %s", exc)
                if self._certs:
                    return self._certs
                raise IdentityError("Identity certificates unavailable") from exc
            self._certs = certs
            self._certs_expire_at = time.monotonic() + max_age
            return self._certs

    def verify(self, token: str) -> Principal:
        if not self.project_id:
            raise IdentityError("FIREBASE_PROJECT_ID is not configured")
        try:
            header = jwt.get_unverified_header(token)
        except JWTError as exc:
            raise IdentityError("Malformed token") from exc

        cert = self.get_certs().get(header.get("kid") or "")
        if not cert:
            raise IdentityError("Unknown signing key")

        try:
            claims = jwt.decode(
                token,
                cert,
                algorithms=["RS256"],
                audience=self.project_id,
                issuer=f"https://securetoken.google.com/{self.project_id}",
            )
        except JWTError as exc:
            raise IdentityError("Invalid or expired token") from exc

        uid = claims.get("sub") or claims.get("user_id")
        if not uid:
            raise IdentityError("Token without subject")
        return Principal(uid=str(uid), email=claims.get("email"), name=claims.get("name"))
