from __future__ import annotations
"""User lookups used to resolve the next owner of a ticket or work order."""
from typing import Optional
from sqlalchemy import select
from maintflow.constants.roles import Role
from maintflow.models.org import Store, User


def _first_active(session, *criteria) -> Optional[User]:
    return session.execute(
        select(User).where(User.is_active.is_(True), *criteria).order_by(User.id.asc()).limit(1)
    ).scalar_one_or_none()


def get_user(session, user_id) -> Optional[User]:
    if user_id is None:
        return None
    return session.get(User, int(user_id))


def get_active_user(session, user_id) -> Optional[User]:
    user = get_user(session, user_id)
    if user is None or not user.is_active:
        return None
    return user


def get_store(session, store_id) -> Optional[Store]:
    return session.get(Store, int(store_id)) if store_id is not None else None


def find_area_user(session, role: Role, company_id: int, region_id: int) -> Optional[User]:
    """Region-scoped internal role (AM, AMM)."""
    return _first_active(session, User.role == role.value, User.company_id == company_id, User.region_id == region_id)


def find_company_user(session, role: Role, company_id: int) -> Optional[User]:
    """Company-wide internal role (D, C2, BOD)."""
    return _first_active(session, User.role == role.value, User.company_id == company_id)


def find_store_manager(session, store_id: int) -> Optional[User]:
    return _first_active(session, User.role == Role.SM.value, User.store_id == store_id)


def find_vendor_user(session, role: Role, vendor_company_id: int) -> Optional[User]:
    return _first_active(session, User.role == role.value, User.vendor_company_id == vendor_company_id)


def find_internal_role_user(session, role: Role, store: Store) -> Optional[User]:
    """Resolve an internal role for the store's organisation scope."""
    if role == Role.SM:
        return find_store_manager(session, store.id)
    if role in (Role.AM, Role.AMM):
        return find_area_user(session, role, store.company_id, store.region_id)
    return find_company_user(session, role, store.company_id)


__all__ = [
    'get_user', 'get_active_user', 'get_store', 'find_area_user', 'find_company_user',
    'find_store_manager', 'find_vendor_user', 'find_internal_role_user',
]
