from __future__ import annotations

import logging
import re
import time
from dataclasses import dataclass, field
from typing import Any

import httpx
from jose import JWTError, jwt

from app.core.settings import Settings

logger = logging.getLogger(__name__)

STATIC_KEY_ID = "static"
_MAX_AGE_RE = re.compile(r"max-age=(\d+)")


class IdentityVerificationError(ValueError):
    pass


@dataclass(frozen=True, slots=True)
class VerifiedIdentity:
    email: str
    subject: str
    claims: dict[str, Any] = field(default_factory=dict, repr=False)


def _read_key(path: str) -> str:
    with open(path, "r", encoding="utf-8") as key_file:
        return key_file.read()


class IdentityVerifier:
    """Verify ID tokens minted by the external identity provider.

    Tokens are RS256 JWTs whose ``kid`` header points at one of the provider's
    published x509 certificates. A statically configured public key takes
    precedence over the certificate endpoint, which is what local development
    and the test-suite use.
    """

    def __init__(
        self,
        *,
        audience: str,
        issuer: str,
        algorithm: str = "RS256",
        static_public_key: str | None = None,
        certs_url: str | None = None,
        http_client: httpx.AsyncClient | None = None,
    ) -> None:
        self.audience = audience
        self.issuer = issuer
        self.algorithm = algorithm
        self._static_public_key = static_public_key
        self._certs_url = certs_url
        self._http_client = http_client
        self._owns_client = False
        self._certs: dict[str, str] = {}
        self._certs_expire_at = 0.0

    @classmethod
    def from_settings(cls, settings: Settings) -> "IdentityVerifier":
        static_key = settings.identity_public_key
        if not static_key and settings.identity_public_key_path:
            static_key = _read_key(settings.identity_public_key_path)
        return cls(
            audience=settings.identity_project_id,
            issuer=settings.resolved_identity_issuer,
            algorithm=settings.identity_algorithm,
            static_public_key=static_key,
            certs_url=settings.identity_certs_url,
        )

    async def aclose(self) -> None:
        if self._http_client is not None and self._owns_client:
            await self._http_client.aclose()
            self._http_client = None

    async def _fetch_certs(self) -> dict[str, str]:
        now = time.monotonic()
        if self._certs and now < self._certs_expire_at:
            return self._certs
        if not self._certs_url:
            raise IdentityVerificationError("No identity provider keys configured")
        if self._http_client is None:
            self._http_client = httpx.AsyncClient(timeout=10.0)
            self._owns_client = True
        try:
            response = await self._http_client.get(self._certs_url)
            response.raise_for_status()
        except httpx.HTTPError as exc:
            logger.warning("Failed to fetch identity provider certificates: %s", exc)
            raise IdentityVerificationError("Identity provider keys unavailable") from exc
        certs = response.json()
        if not isinstance(certs, dict):
            raise IdentityVerificationError("Identity provider returned malformed keys")
        max_age = 3600
        match = _MAX_AGE_RE.search(response.headers.get("cache-control", ""))
        if match:
            max_age = int(match.group(1))
        self._certs = {str(k): str(v) for k, v in certs.items()}
        self._certs_expire_at = now + max_age
        return self._certs

    async def _key_for(self, token: str) -> str:
        if self._static_public_key:
            return self._static_public_key
        try:
            header = jwt.get_unverified_header(token)
        except JWTError as exc:
            raise IdentityVerificationError("Malformed token") from exc
        kid = header.get("kid")
        certs = await self._fetch_certs()
        if not kid or kid not in certs:
            raise IdentityVerificationError("Unknown signing key")
        return certs[kid]

    async def verify(self, token: str) -> VerifiedIdentity:
        if not token:
            raise IdentityVerificationError("Missing token")
        key = await self._key_for(token)
        try:
            claims = jwt.decode(
                token,
                key,
                algorithms=[self.algorithm],
                audience=self.audience,
                issuer=self.issuer,
            )
        except JWTError as exc:
            raise IdentityVerificationError("Invalid token") from exc
        email = claims.get("email")
        if not email or not isinstance(email, str):
            raise IdentityVerificationError("Token carries no email claim")
        return VerifiedIdentity(
            email=email.strip().lower(),
            subject=str(claims.get("sub") or ""),
            claims=claims,
        )
