from __future__ import annotations
"""Closed role enumeration shared by the transition tables and the services.

Internal roles belong to the retail organisation; vendor roles (S1-S3) belong to
an external service company. Vendor codes are an ``S`` followed by a digit, so
``SM`` (Store Manager) stays internal.
"""
from enum import Enum
from typing import Optional


class Role(str, Enum):
    SM = 'SM'
    AM = 'AM'
    AMM = 'AMM'
    D = 'D'
    C2 = 'C2'
    BOD = 'BOD'
    S1 = 'S1'
    S2 = 'S2'
    S3 = 'S3'

    @property
    def label(self) -> str:
        return ROLE_LABELS[self]

    @property
    def is_vendor(self) -> bool:
        return is_vendor_role(self.value)


ROLE_LABELS = {
    Role.SM: 'Store Manager',
    Role.AM: 'Area Manager',
    Role.AMM: 'Area Maintenance Manager',
    Role.D: 'Sales Director',
    Role.C2: 'Maintenance Director',
    Role.BOD: 'Board of Directors',
    Role.S1: 'Service Admin',
    Role.S2: 'Technician',
    Role.S3: 'Finance / Back-office',
}

INTERNAL_ROLES = frozenset({Role.SM, Role.AM, Role.AMM, Role.D, Role.C2, Role.BOD})
VENDOR_ROLES = frozenset({Role.S1, Role.S2, Role.S3})


def normalize_role(value) -> str:
    """Trim and upper-case a role code (``' amm '`` -> ``'AMM'``)."""
    if value is None:
        return ''
    if isinstance(value, Role):
        return value.value
    return str(value).strip().upper()


def parse_role(value) -> Optional[Role]:
    code = normalize_role(value)
    try:
        return Role(code)
    except ValueError:
        return None


def is_vendor_role(value) -> bool:
    code = normalize_role(value)
    return len(code) >= 2 and code[0] == 'S' and code[1].isdigit()


__all__ = ['Role', 'ROLE_LABELS', 'INTERNAL_ROLES', 'VENDOR_ROLES', 'normalize_role', 'parse_role', 'is_vendor_role']
