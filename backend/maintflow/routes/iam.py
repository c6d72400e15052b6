from flask import Blueprint, abort
from flask_jwt_extended import create_access_token, jwt_required
from sqlalchemy import select
from maintflow import get_db
from maintflow.constants.roles import parse_role
from maintflow.models.org import User
from maintflow.services.policy import build_claims, current_user
from maintflow.utils.validation import json_body

iam_bp = Blueprint('iam', __name__)


def user_json(user: User):
    role = parse_role(user.role)
    return {
        'id': user.id,
        'name': user.name,
        'email': user.email,
        'role': user.role,
        'role_label': role.label if role else user.role,
        'company_id': user.company_id,
        'region_id': user.region_id,
        'store_id': user.store_id,
        'vendor_company_id': user.vendor_company_id,
        'is_active': user.is_active,
    }


@iam_bp.post('/auth/login')
def login():
    data = json_body()
    email = data.get('email'); password = data.get('password')
    if not email or not password:
        abort(400, description='email & password required')
    session = get_db()
    user = session.execute(select(User).where(User.email == email)).scalar_one_or_none()
    if not user or not user.is_active or not user.verify_password(password):
        abort(401, description='invalid credentials')
    # JWT identity must be a string (flask-jwt-extended v4 requirement)
    token = create_access_token(identity=str(user.id), additional_claims=build_claims(user))
    return {'access_token': token, 'user': user_json(user)}


@iam_bp.get('/auth/me')
@jwt_required()
def me():
    return user_json(current_user())
