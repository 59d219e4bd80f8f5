from __future__ import annotations

import abc
import threading
import time
from dataclasses import dataclass, field
from typing import Any, Dict, Mapping, Optional

import httpx
from jose import jwt
from jose.exceptions import JWTClaimsError, JWTError

from products_api.core.config import Settings
from products_api.core.logging import get_logger
from products_api.exceptions import AuthError

logger = get_logger(__name__)


@dataclass(frozen=True)
class AuthClaims:
    subject: str
    scopes: tuple[str, ...] = ()
    client_id: Optional[str] = None
    token_use: Optional[str] = None
    raw: Mapping[str, Any] = field(default_factory=dict, repr=False)

    @classmethod
    def from_claims(cls, claims: Mapping[str, Any]) -> "AuthClaims":
        scope = claims.get("scope") or ""
        return cls(
            subject=str(claims.get("sub", "")),
            scopes=tuple(str(scope).split()),
            client_id=claims.get("client_id") or claims.get("aud"),
            token_use=claims.get("token_use"),
            raw=dict(claims),
        )


def strip_bearer(raw_token: Optional[str]) -> str:
    """
    Return the credential without its "Bearer " scheme.

    Accepts any casing for the scheme; a value without a scheme is returned as-is.
    """
    token = (raw_token or "").strip()
    parts = token.split(None, 1)
    if len(parts) == 2 and parts[0].lower() == "bearer":
        return parts[1].strip()
    return token


class CredentialVerifier(abc.ABC):
    """Turns a bearer credential into AuthClaims or raises AuthError."""

    @abc.abstractmethod
    def verify(self, raw_token: Optional[str]) -> AuthClaims:
        raise NotImplementedError


class KeySetVerifier(CredentialVerifier):
    """
    Verifies RS256 JWTs against a JSON Web Key Set.

    Subclasses decide where the key set comes from. python-jose has no `leeway`
    kwarg, so exp/nbf are checked here with the configured tolerance.
    """

    def __init__(
        self,
        *,
        algorithms: Optional[list[str]] = None,
        issuer: Optional[str] = None,
        leeway_seconds: int = 10,
    ) -> None:
        self._algorithms = algorithms or ["RS256"]
        self._issuer = issuer.rstrip("/") if issuer else None
        self._leeway_seconds = leeway_seconds

    @abc.abstractmethod
    def _get_jwks(self, *, force_refresh: bool = False) -> Dict[str, Any]:
        raise NotImplementedError

    @staticmethod
    def _find_key(jwks: Dict[str, Any], kid: str) -> Optional[Dict[str, Any]]:
        keys = jwks.get("keys", [])
        if not isinstance(keys, list):
            raise RuntimeError("JWKS keys is not a list")

        for k in keys:
            if isinstance(k, dict) and k.get("kid") == kid:
                return k
        return None

    def _signing_key(self, kid: str) -> Dict[str, Any]:
        key = self._find_key(self._get_jwks(), kid)
        if key is None:
            # Keys may have been rotated since the set was cached.
            key = self._find_key(self._get_jwks(force_refresh=True), kid)
        if key is None:
            raise JWTError(f"Signing key not found for kid={kid!r}")
        return key

    def _check_time_claims(self, claims: Dict[str, Any]) -> None:
        now = int(time.time())

        exp = claims.get("exp")
        if exp is None:
            raise JWTClaimsError("Missing exp claim")
        try:
            exp_i = int(exp)
        except (TypeError, ValueError) as e:
            raise JWTClaimsError("Invalid exp claim") from e
        if now > exp_i + self._leeway_seconds:
            raise JWTClaimsError("Token has expired")

        nbf = claims.get("nbf")
        if nbf is not None:
            try:
                nbf_i = int(nbf)
            except (TypeError, ValueError) as e:
                raise JWTClaimsError("Invalid nbf claim") from e
            if now < nbf_i - self._leeway_seconds:
                raise JWTClaimsError("Token not yet valid (nbf)")

    def decode_and_verify(self, token: str) -> Dict[str, Any]:
        """
        Decode and verify a JWT, returning its claims.

        Raises jose.exceptions.JWTError/JWTClaimsError on validation errors.
        """
        token = (token or "").strip()
        if not token:
            raise JWTError("Empty token")

        header = jwt.get_unverified_header(token)
        kid = header.get("kid")
        if not kid:
            raise JWTError("Missing kid in JWT header")

        key = self._signing_key(kid)

        options = {
            "verify_signature": True,
            "verify_aud": False,
            "verify_iss": self._issuer is not None,
            "verify_exp": False,
            "verify_nbf": False,
            "verify_at_hash": False,
        }
        claims = jwt.decode(
            token,
            key,
            algorithms=self._algorithms,
            issuer=self._issuer,
            options=options,
        )

        self._check_time_claims(claims)
        return claims

    def verify(self, raw_token: Optional[str]) -> AuthClaims:
        try:
            claims = self.decode_and_verify(strip_bearer(raw_token))
        except (JWTClaimsError, JWTError) as e:
            # Keep response generic; the cause is only logged.
            logger.info("Token validation failed: %s", e)
            raise AuthError() from e
        except Exception as e:  # noqa: BLE001
            logger.exception("Unexpected error while validating token: %s", e)
            raise AuthError() from e
        return AuthClaims.from_claims(claims)


class JWKSVerifier(KeySetVerifier):
    """Fetches the issuer's JWKS over HTTPS and caches it process-wide."""

    def __init__(
        self,
        jwks_url: str,
        *,
        cache_ttl_seconds: int = 300,
        http_timeout_seconds: float = 5.0,
        client: Optional[httpx.Client] = None,
        **kwargs: Any,
    ) -> None:
        super().__init__(**kwargs)
        self._jwks_url = jwks_url
        self._cache_ttl_seconds = cache_ttl_seconds
        self._http_timeout_seconds = http_timeout_seconds
        self._client = client
        self._jwks_cache: Optional[Dict[str, Any]] = None
        self._jwks_cache_ts: float = 0.0
        self._lock = threading.Lock()

    @classmethod
    def from_settings(cls, settings: Settings) -> "JWKSVerifier":
        return cls(
            settings.oidc_jwks_url,
            cache_ttl_seconds=settings.oidc_jwks_cache_seconds,
            http_timeout_seconds=settings.oidc_http_timeout_seconds,
            algorithms=settings.oidc_algorithms_list,
            issuer=settings.oidc_issuer_expected if settings.oidc_verify_issuer else None,
            leeway_seconds=settings.oidc_leeway_seconds,
        )

    def _fetch(self) -> Dict[str, Any]:
        if self._client is not None:
            r = self._client.get(self._jwks_url, timeout=self._http_timeout_seconds)
        else:
            with httpx.Client(timeout=self._http_timeout_seconds) as client:
                r = client.get(self._jwks_url)
        r.raise_for_status()
        jwks = r.json()

        if not isinstance(jwks, dict) or "keys" not in jwks:
            raise RuntimeError("Invalid JWKS response")
        return jwks

    def _get_jwks(self, *, force_refresh: bool = False) -> Dict[str, Any]:
        with self._lock:
            now = time.time()
            fresh = (now - self._jwks_cache_ts) < self._cache_ttl_seconds
            if self._jwks_cache and fresh and not force_refresh:
                return self._jwks_cache

            logger.info("Fetching JWKS from %s", self._jwks_url)
            self._jwks_cache = self._fetch()
            self._jwks_cache_ts = now
            return self._jwks_cache


class StaticKeyVerifier(KeySetVerifier):
    """Verifies against a fixed key set (tests, local development)."""

    def __init__(self, jwks: Dict[str, Any], **kwargs: Any) -> None:
        super().__init__(**kwargs)
        if not isinstance(jwks, dict) or "keys" not in jwks:
            raise ValueError("jwks must be a mapping with a 'keys' list")
        self._jwks = jwks

    def _get_jwks(self, *, force_refresh: bool = False) -> Dict[str, Any]:
        return self._jwks
