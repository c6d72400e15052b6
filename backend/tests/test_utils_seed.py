"""Test seeding utilities to reduce duplication.

These helpers build one company with a region, a store and a vendor, plus one
active user per role, so each test can drive the workflow from a clean database.
"""
from dataclasses import dataclass, field
from decimal import Decimal
from typing import Dict, Optional
from maintflow import get_db
from maintflow.constants.roles import Role, VENDOR_ROLES
from maintflow.models.org import Asset, Company, Region, Store, User, VendorCompany
from maintflow.models.work_order import VendorPriceListItem

PASSWORD = 'pw'


@dataclass
class Org:
    company: Company
    region: Region
    store: Store
    vendor: VendorCompany
    users: Dict[str, User] = field(default_factory=dict)

    def user(self, role) -> User:
        return self.users[getattr(role, 'value', role)]


def ensure_user(email: str, role: Role, name: Optional[str] = None, password: str = PASSWORD, **scope) -> User:
    session = get_db()
    u = session.query(User).filter_by(email=email).one_or_none()
    if not u:
        u = User(name=name or email.split('@')[0], email=email, role=role.value, is_active=True, **scope)
        u.set_password(password)
        session.add(u); session.commit(); session.refresh(u)
    return u


def scope_for(org: Org, role: Role) -> dict:
    if role in VENDOR_ROLES:
        return {'vendor_company_id': org.vendor.id}
    scope = {'company_id': org.company.id}
    if role in (Role.SM, Role.AM, Role.AMM):
        scope['region_id'] = org.region.id
    if role == Role.SM:
        scope['store_id'] = org.store.id
    return scope


def seed_org(prefix: str = 'demo') -> Org:
    """Company, region, store, vendor and one user per role (idempotent per prefix)."""
    session = get_db()
    company = session.query(Company).filter_by(name=f'{prefix} retail').one_or_none()
    if not company:
        company = Company(name=f'{prefix} retail')
        session.add(company); session.flush()
        region = Region(company_id=company.id, name=f'{prefix} north')
        session.add(region); session.flush()
        store = Store(company_id=company.id, region_id=region.id, code=f'{prefix.upper()}-001', name=f'{prefix} store')
        vendor = VendorCompany(name=f'{prefix} fixers', is_active=True)
        session.add_all([store, vendor]); session.commit()
    else:
        region = session.query(Region).filter_by(company_id=company.id).first()
        store = session.query(Store).filter_by(company_id=company.id).first()
        vendor = session.query(VendorCompany).filter_by(name=f'{prefix} fixers').one()
    org = Org(company=company, region=region, store=store, vendor=vendor)
    for role in Role:
        org.users[role.value] = ensure_user(f'{role.value.lower()}@{prefix}.test', role, name=f'{prefix} {role.label}',
                                            **scope_for(org, role))
    return org


def add_user(org: Org, role: Role, email: str, **overrides) -> User:
    """Extra user for the org (second technician, replacement approver...)."""
    scope = scope_for(org, role)
    scope.update(overrides)
    return ensure_user(email, role, **scope)


def add_price_item(vendor: VendorCompany, description: str, price, category: str = 'Parts', unit: str = 'pcs',
                   **extra) -> VendorPriceListItem:
    session = get_db()
    item = VendorPriceListItem(vendor_company_id=vendor.id, category=category, description=description, unit=unit,
                               price_per_unit=Decimal(str(price)), **extra)
    session.add(item); session.commit()
    return item


def ensure_asset(org: Org, name: str = 'Freezer') -> Asset:
    session = get_db()
    asset = session.query(Asset).filter_by(store_id=org.store.id, name=name).one_or_none()
    if not asset:
        asset = Asset(store_id=org.store.id, name=name)
        session.add(asset); session.commit()
    return asset


__all__ = ['Org', 'PASSWORD', 'ensure_user', 'seed_org', 'add_user', 'ensure_asset', 'add_price_item', 'scope_for']
