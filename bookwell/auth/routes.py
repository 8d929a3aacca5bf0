from flask import Blueprint, jsonify, request
from flask_login import current_user, login_required, login_user, logout_user

from bookwell import db
from bookwell.models import User
from bookwell.scheduling.errors import InvalidInputError, SchedulingError
from bookwell.scheduling.service import text_field


auth_bp = Blueprint("auth", __name__, url_prefix="/auth")

MIN_PASSWORD_LENGTH = 8


class EmailTakenError(SchedulingError):
    status_code = 409
    message = "Email is already registered"


class BadCredentialsError(SchedulingError):
    status_code = 401
    message = "Invalid email or password"


def _user_dict(user: User) -> dict:
    return {"id": user.id, "email": user.email, "name": user.name}


def _json_body() -> dict:
    data = request.get_json(silent=True)
    return data if isinstance(data, dict) else {}


def _password(data: dict) -> str:
    password = data.get("password") or ""
    if not isinstance(password, str):
        raise InvalidInputError("password must be a string")
    return password


@auth_bp.route("/register", methods=["POST"])
def register():
    data = _json_body()
    name = text_field(data, "name")
    email = text_field(data, "email").lower()
    password = _password(data)

    if not name or not email or not password:
        raise InvalidInputError("Please fill in all fields")
    if len(password) < MIN_PASSWORD_LENGTH:
        raise InvalidInputError(f"Password must be at least {MIN_PASSWORD_LENGTH} characters")
    if User.query.filter_by(email=email).first():
        raise EmailTakenError()

    user = User(name=name, email=email)
    user.set_password(password)
    db.session.add(user)
    db.session.commit()
    login_user(user, remember=True)
    return jsonify(_user_dict(user)), 201


@auth_bp.route("/login", methods=["POST"])
def login():
    data = _json_body()
    email = text_field(data, "email").lower()
    password = _password(data)
    user = User.query.filter_by(email=email).first()
    if not user or not user.check_password(password):
        raise BadCredentialsError()
    login_user(user, remember=True)
    return jsonify(_user_dict(user))


@auth_bp.route("/logout", methods=["POST"])
@login_required
def logout():
    logout_user()
    return jsonify({"ok": True})


@auth_bp.route("/me")
@login_required
def me():
    return jsonify(_user_dict(current_user))
