from __future__ import annotations

from fastapi import APIRouter, Depends

from smartshelf.auth import Principal, get_current_principal, issue_token, verify_internal_token
from smartshelf.errors import AuthError, ValidationError
from smartshelf.schemas import TokenVerifyRequest

router = APIRouter(prefix='/auth', tags=['auth'])


@router.post('/verify')
def verify(payload: TokenVerifyRequest):
    if not payload.token:
        raise ValidationError('Token is required', fields=['token'])
    claims = verify_internal_token(payload.token)
    if claims is None:
        raise AuthError('Invalid or expired token', status_code=401)
    return {'valid': True, 'user': claims}


@router.get('/me')
def me(principal: Principal = Depends(get_current_principal)):
    return {'user': principal.claims}


@router.post('/refresh')
def refresh(principal: Principal = Depends(get_current_principal)):
    return {'token': issue_token(principal.email)}
