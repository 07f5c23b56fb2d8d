"""JWT bearer validation for host routes reached through the bridge."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Dict, List, Optional

import jwt
from fastapi import HTTPException, Request
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer


logger = logging.getLogger(__name__)


@dataclass
class AuthContext:
    subject: Optional[str]
    claims: Dict[str, Any]


class JwtVerifier:
    """Verifies tokens signed with a shared secret."""

    def __init__(
        self,
        secret: str,
        algorithms: Optional[List[str]] = None,
        issuer: Optional[str] = None,
        audience: Optional[str] = None,
    ) -> None:
        if not secret:
            raise ValueError("JwtVerifier needs a secret")
        self.secret = secret
        self.algorithms = algorithms or ["HS256"]
        self.issuer = issuer
        self.audience = audience

    def sign(self, claims: Dict[str, Any]) -> str:
        return jwt.encode(claims, self.secret, algorithm=self.algorithms[0])

    async def verify(self, token: str) -> AuthContext:
        claims = jwt.decode(
            token,
            key=self.secret,
            algorithms=self.algorithms,
            audience=self.audience,
            issuer=self.issuer,
            options={"verify_aud": self.audience is not None},
        )
        return AuthContext(subject=claims.get("sub"), claims=claims)


class BearerAuth:
    """FastAPI dependency rejecting requests without a valid bearer token."""

    def __init__(self, verifier: JwtVerifier) -> None:
        self.verifier = verifier
        self._scheme = HTTPBearer(auto_error=False)

    async def __call__(self, request: Request) -> AuthContext:
        credentials: Optional[HTTPAuthorizationCredentials] = await self._scheme(request)
        if credentials is None:
            raise HTTPException(status_code=401, detail="Unauthorized")
        try:
            auth = await self.verifier.verify(credentials.credentials)
        except jwt.PyJWTError as exc:
            logger.warning("JWT validation failed: %s", exc)
            raise HTTPException(status_code=401, detail="Unauthorized")
        request.state.auth = auth
        return auth
