"""Password hashing, token issuing and the role guard used by the routes."""

from dataclasses import dataclass
from functools import wraps
from typing import Dict

import bcrypt
from bson import ObjectId
from bson.errors import InvalidId
from flask import current_app, g
from flask_jwt_extended import create_access_token, get_jwt, get_jwt_identity, verify_jwt_in_request

from marketplace.errors import AuthorizationError

ROLES = ("customer", "seller")


@dataclass
class Actor:
    role: str
    id: ObjectId
    document: Dict


def hash_password(password: str) -> bytes:
    return bcrypt.hashpw(password.encode("utf-8"), bcrypt.gensalt(rounds=12))


def check_password(password: str, hashed) -> bool:
    if not password or not hashed:
        return False
    if isinstance(hashed, str):
        hashed = hashed.encode("utf-8")
    try:
        return bcrypt.checkpw(password.encode("utf-8"), hashed)
    except ValueError:
        # Stored value is not a bcrypt hash.
        return False


def issue_token(user_id, role: str) -> str:
    return create_access_token(identity=str(user_id), additional_claims={"role": role})


def _accounts(store, role: str):
    return store.customers if role == "customer" else store.sellers


def load_actor(*roles: str) -> Actor:
    """Resolve the verified token to a live account of one of ``roles``."""
    role = get_jwt().get("role")
    if role not in ROLES or (roles and role not in roles):
        raise AuthorizationError("Unauthorized request.")

    try:
        user_id = ObjectId(str(get_jwt_identity()))
    except (InvalidId, TypeError):
        raise AuthorizationError("Invalid token")

    store = current_app.extensions["marketplace"]["store"]
    document = _accounts(store, role).find_by_id(user_id)
    if not document:
        raise AuthorizationError(f"{role.capitalize()} not found")
    return Actor(role=role, id=user_id, document=document)


def role_required(*roles: str):
    """Require a bearer token whose account has one of ``roles``.

    The resolved account is available to the view as ``g.actor``.
    """

    def decorator(view):
        @wraps(view)
        def wrapper(*args, **kwargs):
            verify_jwt_in_request()
            g.actor = load_actor(*roles)
            return view(*args, **kwargs)

        return wrapper

    return decorator
