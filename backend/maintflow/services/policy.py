from __future__ import annotations
from typing import Dict, Any
from flask import abort
from flask_jwt_extended import get_jwt, get_jwt_identity
from maintflow import get_db
from maintflow.constants.roles import normalize_role
from maintflow.models.org import User


def current_role() -> str:
    claims = get_jwt()
    return normalize_role(claims.get('role'))


def has_role(*roles: str) -> bool:
    return current_role() in {normalize_role(r) for r in roles}


def current_user() -> User:
    """The authenticated, still active user; 401 otherwise."""
    ident = get_jwt_identity()
    try:
        user_id = int(ident)
    except (TypeError, ValueError):
        abort(401, description='invalid token identity')
    user = get_db().get(User, user_id)
    if user is None or not user.is_active:
        abort(401, description='user inactive or removed')
    return user


def build_claims(user: User) -> Dict[str, Any]:
    return {
        'role': user.role,
        'company_id': user.company_id,
        'region_id': user.region_id,
        'store_id': user.store_id,
        'vendor_company_id': user.vendor_company_id,
    }
