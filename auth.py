import logging
from functools import wraps

from flask import Blueprint, abort, jsonify, request
from flask_bcrypt import Bcrypt
from flask_jwt_extended import (
    JWTManager, create_access_token, create_refresh_token, get_jwt, get_jwt_identity,
    jwt_required, verify_jwt_in_request,
)
from sqlalchemy.exc import IntegrityError

from models import Admin, User, db, utcnow
from schemas import LoginRequest, RegisterRequest, load
from serializers import admin_to_dict, user_to_dict

logger = logging.getLogger(__name__)

bcrypt = Bcrypt()
jwt = JWTManager()

auth_bp = Blueprint('auth', __name__, url_prefix='/api/auth')

ROLE_USER = 'user'
ROLE_ADMIN = 'admin'


@jwt.user_identity_loader
def user_identity_lookup(principal):
    """Called when a token is created. Stores the row id; the role claim says which table."""
    return str(principal.id)


@jwt.user_lookup_loader
def load_principal(jwt_header, jwt_data):
    """Runs on every protected request. Disabled admins and deleted users get no principal."""
    if jwt_data.get("role") == ROLE_ADMIN:
        admin = db.session.get(Admin, int(jwt_data["sub"]))
        return admin if admin is not None and admin.is_active else None
    return db.session.get(User, int(jwt_data["sub"]))


@jwt.user_lookup_error_loader
def principal_not_found(jwt_header, jwt_data):
    return jsonify({"error": "Account is disabled or no longer exists. Please log in again."}), 401


@jwt.unauthorized_loader
def missing_token(reason):
    return jsonify({"error": f"Authentication required: {reason}"}), 401


@jwt.invalid_token_loader
def invalid_token(reason):
    return jsonify({"error": f"Invalid token: {reason}"}), 401


@jwt.expired_token_loader
def expired_token(jwt_header, jwt_payload):
    return jsonify({"error": "Token has expired. Please log in again."}), 401


def hash_password(password):
    return bcrypt.generate_password_hash(password).decode('utf-8')


def issue_tokens(principal, role):
    claims = {"role": role, "name": getattr(principal, 'name', None) or getattr(principal, 'admin_name', None)}
    return {
        "token": create_access_token(identity=principal, additional_claims=claims),
        "refresh_token": create_refresh_token(identity=principal, additional_claims=claims),
    }


# --- Request helpers ---

def current_role():
    return get_jwt().get('role', ROLE_USER)


def current_id():
    return int(get_jwt_identity())


def is_admin():
    return current_role() == ROLE_ADMIN


def ensure_self_or_admin(user_id):
    if not is_admin() and current_id() != user_id:
        abort(403, description="You do not have access to this resource.")


def admin_required(fn):
    @wraps(fn)
    def wrapper(*args, **kwargs):
        verify_jwt_in_request()
        if not is_admin():
            abort(403, description="Administrator access required.")
        return fn(*args, **kwargs)
    return wrapper


def user_required(fn):
    """Routes that act on behalf of a traveller, not an admin."""
    @wraps(fn)
    def wrapper(*args, **kwargs):
        verify_jwt_in_request()
        if is_admin():
            abort(403, description="This action requires a user account.")
        return fn(*args, **kwargs)
    return wrapper


# --- Authentication Routes ---

@auth_bp.route('/register', methods=['POST'])
def register():
    data = load(RegisterRequest, request.get_json(silent=True))

    if User.query.filter_by(email=data.email).first():
        return jsonify({"error": "Email already exists."}), 409
    if User.query.filter_by(phone=data.phone).first():
        return jsonify({"error": "Phone number already exists."}), 409

    new_user = User(
        name=data.name,
        email=data.email,
        phone=data.phone,
        password_hash=hash_password(data.password),
    )

    try:
        db.session.add(new_user)
        db.session.commit()
    except IntegrityError:
        db.session.rollback()
        return jsonify({"error": "Email or phone number already exists."}), 409

    logger.info("Registered user %s", new_user.id)
    return jsonify({**issue_tokens(new_user, ROLE_USER), "user": user_to_dict(new_user)}), 201


@auth_bp.route('/login', methods=['POST'])
def login():
    data = load(LoginRequest, request.get_json(silent=True))

    user = User.query.filter_by(email=data.email).first()
    if user and bcrypt.check_password_hash(user.password_hash, data.password):
        logger.info("User %s logged in", user.id)
        return jsonify({**issue_tokens(user, ROLE_USER), "user": user_to_dict(user)}), 200

    logger.warning("Failed login attempt")
    return jsonify({"error": "Invalid email or password."}), 401


@auth_bp.route('/admin-login', methods=['POST'])
def admin_login():
    data = load(LoginRequest, request.get_json(silent=True))

    admin = Admin.query.filter_by(email=data.email).first()
    if not admin or not bcrypt.check_password_hash(admin.password_hash, data.password):
        logger.warning("Failed admin login attempt")
        return jsonify({"error": "Invalid email or password."}), 401
    if not admin.is_active:
        return jsonify({"error": "This administrator account is disabled."}), 403

    admin.last_login = utcnow()
    db.session.commit()

    logger.info("Admin %s logged in", admin.id)
    return jsonify({**issue_tokens(admin, ROLE_ADMIN), "user": admin_to_dict(admin)}), 200


@auth_bp.route('/refresh', methods=['POST'])
@jwt_required(refresh=True)
def refresh():
    role = current_role()
    model = Admin if role == ROLE_ADMIN else User
    principal = db.session.get(model, current_id())
    if principal is None:
        return jsonify({"error": "Account no longer exists."}), 401

    claims = {"role": role, "name": get_jwt().get('name')}
    return jsonify({"token": create_access_token(identity=principal, additional_claims=claims)}), 200


@auth_bp.route('/me', methods=['GET'])
@jwt_required()
def me():
    if is_admin():
        admin = db.session.get(Admin, current_id())
        if admin is None:
            abort(404, description="Account not found.")
        return jsonify({"role": ROLE_ADMIN, "user": admin_to_dict(admin)}), 200

    user = db.session.get(User, current_id())
    if user is None:
        abort(404, description="Account not found.")
    return jsonify({"role": ROLE_USER, "user": user_to_dict(user)}), 200
