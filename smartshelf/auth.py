from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone

from fastapi import Depends, Request
from jose import JWTError, jwt

from smartshelf.config import settings
from smartshelf.dependencies import get_client_ip
from smartshelf.errors import AuthError
from smartshelf.services.audit_service import Actor

PORTAL_ISSUER = 'portal'
INTERNAL_ISSUER = 'internal'


@dataclass(frozen=True)
class TokenVerifier:
    issuer: str
    secret: str
    algorithm: str = 'HS256'

    def verify(self, token: str) -> dict:
        return jwt.decode(token, self.secret, algorithms=[self.algorithm])


@dataclass
class Principal:
    email: str
    issuer: str
    claims: dict = field(default_factory=dict)


def build_verifiers() -> list[TokenVerifier]:
    verifiers = []
    if settings.portal_jwt_secret:
        verifiers.append(TokenVerifier(PORTAL_ISSUER, settings.portal_jwt_secret, settings.jwt_algorithm))
    verifiers.append(TokenVerifier(INTERNAL_ISSUER, settings.jwt_secret, settings.jwt_algorithm))
    return verifiers


def authenticate_token(token: str | None, verifiers: list[TokenVerifier] | None = None) -> Principal:
    if not token:
        raise AuthError('Access denied. No token provided.', status_code=401)

    for verifier in verifiers if verifiers is not None else build_verifiers():
        try:
            claims = verifier.verify(token)
        except JWTError:
            continue
        email = claims.get('email')
        if not email:
            raise AuthError('Token is missing the email claim.', status_code=403)
        return Principal(email=email, issuer=verifier.issuer, claims=claims)

    raise AuthError('Invalid or expired token.', status_code=403)


def issue_token(email: str, *, expires_in: timedelta | None = None) -> str:
    expires_at = datetime.now(tz=timezone.utc) + (expires_in or timedelta(hours=settings.jwt_expire_hours))
    return jwt.encode({'email': email, 'exp': expires_at}, settings.jwt_secret, algorithm=settings.jwt_algorithm)


def verify_internal_token(token: str) -> dict | None:
    verifier = TokenVerifier(INTERNAL_ISSUER, settings.jwt_secret, settings.jwt_algorithm)
    try:
        return verifier.verify(token)
    except JWTError:
        return None


def extract_token(request: Request) -> str | None:
    header = request.headers.get('authorization', '')
    scheme, _, value = header.partition(' ')
    if scheme.lower() == 'bearer' and value.strip():
        return value.strip()
    return request.query_params.get('token') or None


def get_current_principal(request: Request) -> Principal:
    principal = getattr(request.state, 'principal', None)
    if principal is None:
        principal = authenticate_token(extract_token(request))
        request.state.principal = principal
    return principal


def get_actor(request: Request, principal: Principal = Depends(get_current_principal)) -> Actor:
    return Actor(
        email=principal.email,
        source_address=get_client_ip(request),
        client_agent=request.headers.get('user-agent'),
    )
