#!/usr/bin/env python
"""Idempotent seed script for a demo organisation with one user per role.

Usage:
    python backend/scripts/seed_demo.py                # seed normally
    python backend/scripts/seed_demo.py --reset        # drop & recreate all tables first
    python backend/scripts/seed_demo.py --dry-run      # run logic then rollback (no DB changes)
    python backend/scripts/seed_demo.py --show-users   # print seeded users (after ensuring seed)
"""
from __future__ import annotations
import os, sys, argparse, textwrap
from decimal import Decimal
from sqlalchemy import select

# Allow running from repo root
sys.path.append(os.path.abspath('backend'))

from maintflow import create_app, get_db  # type: ignore
from maintflow.constants.roles import Role, VENDOR_ROLES
from maintflow.models.org import Asset, Base, Company, Region, Store, User, VendorCompany
from maintflow.models.work_order import VendorPriceListItem
from maintflow.models import ticket, approval, qr, audit  # noqa: F401

COMPANY = 'Demo Retail'
REGION = 'North'
STORE = ('S001', 'Demo Store Central')
VENDOR = 'FixIt Services'
ASSETS = [('Freezer 1', 'FRZ-0001'), ('Entrance door', None)]
PRICE_LIST = [
    ('Refrigeration', 'Compressor relay', 'pcs', Decimal('120.50'), True),
    ('Labor', 'Service time (15 min units)', '15 min', Decimal('10.00'), False),
    ('Fixed Fees', 'Arrival to location', 'arrival', Decimal('50.00'), False),
]


def demo_email(role: Role) -> str:
    return f'{role.value.lower()}@demo.local'


def _get_or_add(session, model, defaults=None, **criteria):
    obj = session.execute(select(model).filter_by(**criteria)).scalar_one_or_none()
    if obj is not None:
        return obj, False
    obj = model(**criteria, **(defaults or {}))
    session.add(obj)
    session.flush()
    return obj, True


def ensure_org(session):
    created = 0
    company, c = _get_or_add(session, Company, name=COMPANY); created += c
    region, c = _get_or_add(session, Region, company_id=company.id, name=REGION); created += c
    store, c = _get_or_add(session, Store, defaults={'name': STORE[1]}, company_id=company.id, region_id=region.id,
                           code=STORE[0]); created += c
    vendor, c = _get_or_add(session, VendorCompany, defaults={'is_active': True}, name=VENDOR); created += c
    for name, serial in ASSETS:
        _, c = _get_or_add(session, Asset, defaults={'serial_number': serial}, store_id=store.id, name=name); created += c
    for category, desc, unit, price, selectable in PRICE_LIST:
        _, c = _get_or_add(session, VendorPriceListItem,
                           defaults={'category': category, 'unit': unit, 'price_per_unit': price, 'selectable': selectable},
                           vendor_company_id=vendor.id, description=desc); created += c
    return company, region, store, vendor, created


def ensure_users(session, company, region, store, vendor, password: str):
    created = 0
    for role in Role:
        email = demo_email(role)
        if session.execute(select(User).where(User.email == email)).scalar_one_or_none():
            continue
        user = User(name=role.label, email=email, role=role.value, is_active=True)
        if role in VENDOR_ROLES:
            user.vendor_company_id = vendor.id
        else:
            user.company_id = company.id
            if role in (Role.SM, Role.AM, Role.AMM):
                user.region_id = region.id
            if role == Role.SM:
                user.store_id = store.id
        user.set_password(password)
        session.add(user)
        created += 1
    return created


def print_users(session):
    users = session.execute(select(User).order_by(User.id)).scalars().all()
    if not users:
        print('[INFO] No users present.')
        return
    width = max(len(u.email) for u in users)
    print(f"{'Email'.ljust(width)} | Role | Name")
    print('-' * (width + 30))
    for u in users:
        print(f'{u.email.ljust(width)} | {u.role.ljust(4)} | {u.name}')


def parse_args(argv=None):
    p = argparse.ArgumentParser(
        description='Seed a demo organisation for the maintenance workflow',
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog=textwrap.dedent("""Examples:\n  seed normally: seed_demo.py\n  rebuild schema: seed_demo.py --reset\n  dry run: seed_demo.py --dry-run\n""")
    )
    p.add_argument('--reset', action='store_true', help='Drop and recreate all tables before seeding')
    p.add_argument('--dry-run', action='store_true', help='Rollback after operations (no commit)')
    p.add_argument('--show-users', action='store_true', help='Print seeded users')
    return p.parse_args(argv)


def main(argv=None):
    args = parse_args(argv)
    app = create_app()
    with app.app_context():
        engine = get_db().get_bind()
        if args.reset:
            if args.dry_run:
                print('[DRY-RUN] --reset ignored; schema left untouched')
            else:
                Base.metadata.drop_all(engine)
                print('[INFO] Dropped all tables')
        # lightweight bootstrap; in real env prefer alembic upgrade
        Base.metadata.create_all(engine)

    with app.app_context():
        session = get_db()
        password = os.getenv('SEED_DEMO_PASSWORD', 'ChangeMe123!')
        company, region, store, vendor, created_org = ensure_org(session)
        created_users = ensure_users(session, company, region, store, vendor, password)
        if args.show_users:
            session.flush()
            print_users(session)
        if args.dry_run:
            session.rollback()
            print(f'[DRY-RUN] (rolled back) Org records would create: {created_org}, Users would create: {created_users}')
        else:
            session.commit()
            print(f'[DONE] Org records created: {created_org}, Users created: {created_users}')
    return 0


if __name__ == '__main__':
    sys.exit(main())
