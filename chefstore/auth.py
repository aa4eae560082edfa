"""Bearer-token guard shared by the user and admin endpoints.

A ``Realm`` says which store a token's subject must resolve against and how a
failed lookup is reported. ``identity_required(realm)`` wraps a view, verifies
the token and calls the view with the resolved ``Identity`` as its first
positional argument.
"""
from dataclasses import dataclass
from functools import wraps
from typing import Dict, Optional, Type

from flask_jwt_extended import get_jwt, verify_jwt_in_request
from flask_jwt_extended.exceptions import JWTExtendedException, NoAuthorizationError
from jwt.exceptions import PyJWTError

from .errors import ApiError, Forbidden, NotFound, Unauthenticated, error_response
from .tokens import ADMIN_ROLE, SESSION_PURPOSE


@dataclass(frozen=True)
class Identity:
    id: str
    email: str
    role: Optional[str]
    record: Dict


@dataclass(frozen=True)
class Realm:
    name: str
    store: object
    missing_error: Type[ApiError]
    missing_message: str
    required_role: Optional[str] = None

    def resolve(self, claims: Dict) -> Identity:
        if self.required_role and claims.get("role") != self.required_role:
            raise Forbidden()
        record = self.store.find_by_id(claims.get("sub"))
        if not record:
            raise self.missing_error(self.missing_message)
        return Identity(
            id=str(record["_id"]),
            email=record.get("email", ""),
            role=claims.get("role"),
            record=record,
        )


def user_realm(user_store) -> Realm:
    return Realm("user", user_store, NotFound, "User not found")


def admin_realm(admin_store) -> Realm:
    return Realm(
        "admin", admin_store, Forbidden, "Forbidden: Not an admin", ADMIN_ROLE
    )


def authenticate(realm: Realm) -> Identity:
    try:
        verify_jwt_in_request()
        claims = get_jwt()
    except NoAuthorizationError as exc:
        raise Unauthenticated("No token provided") from exc
    except (JWTExtendedException, PyJWTError) as exc:
        raise Unauthenticated() from exc

    if claims.get("purpose") != SESSION_PURPOSE:
        raise Unauthenticated()
    return realm.resolve(claims)


def identity_required(realm: Realm):
    def decorator(view):
        @wraps(view)
        def wrapper(*args, **kwargs):
            try:
                identity = authenticate(realm)
            except ApiError as exc:
                return error_response(exc)
            return view(identity, *args, **kwargs)

        return wrapper

    return decorator
