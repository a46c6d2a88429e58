import enum
from datetime import datetime, timedelta
from functools import wraps
from typing import NamedTuple

import jwt
from flask import current_app, jsonify, request


class Role(str, enum.Enum):
    CUSTOMER = "customer"
    MECHANIC = "mechanic"
    ADMIN = "admin"


class Principal(NamedTuple):
    user_id: int
    role: Role


def generate_token(user, expires_in=None):
    if expires_in is None:
        expires_in = current_app.config["TOKEN_EXPIRES_IN"]
    role = user.role.value if isinstance(user.role, Role) else user.role
    payload = {
        "user_id": user.id,
        "role": role,
        "exp": datetime.utcnow() + timedelta(seconds=expires_in),
        "iat": datetime.utcnow()
    }

    token = jwt.encode(payload, current_app.config["SECRET_KEY"], algorithm="HS256")
    return token

def decode_token(token):
    try:
        payload = jwt.decode(token, current_app.config["SECRET_KEY"], algorithms=["HS256"])
        return payload  # Returns dict with user_id, role, etc.
    except jwt.ExpiredSignatureError:
        return None
    except jwt.InvalidTokenError:
        return None

def resolve_principal():
    """Turn the bearer token on the current request into a Principal, or None."""
    header = request.headers.get("Authorization", "")
    scheme, _, token = header.partition(" ")
    if scheme.lower() != "bearer" or not token:
        return None
    payload = decode_token(token.strip())
    if not payload:
        return None
    try:
        return Principal(user_id=int(payload["user_id"]), role=Role(payload["role"]))
    except (KeyError, TypeError, ValueError):
        return None

def require_principal(*roles):
    """Resolve the caller and pass it to the view as its first argument."""
    def decorator(view):
        @wraps(view)
        def wrapper(*args, **kwargs):
            principal = resolve_principal()
            if principal is None:
                return jsonify({"error": "Authentication required"}), 401
            if roles and principal.role not in roles:
                return jsonify({"error": "Unauthorized"}), 403
            return view(principal, *args, **kwargs)
        return wrapper
    return decorator
