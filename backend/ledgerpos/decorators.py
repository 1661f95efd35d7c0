# Overview: Request decorators for API routes; exposes the upstream-authenticated actor.

from __future__ import annotations

from dataclasses import dataclass
from functools import wraps

from flask import g, jsonify, request


USER_ID_HEADER = "X-User-Id"
USERNAME_HEADER = "X-Username"
USER_ROLE_HEADER = "X-User-Role"


@dataclass(frozen=True)
class Actor:
    """Acting user as supplied by the identity middleware in front of this service."""
    id: str
    username: str | None = None
    role: str | None = None

    def to_dict(self) -> dict:
        return {"id": self.id, "username": self.username, "role": self.role}


def require_actor(f):
    """
    Require an identified actor and expose it as g.actor.

    TRUST: Authentication and permission checks happen upstream; the headers
    are taken as-is and used for audit fields only.

    Returns 401 if X-User-Id is missing or blank.
    """
    @wraps(f)
    def decorated_function(*args, **kwargs):
        user_id = (request.headers.get(USER_ID_HEADER) or "").strip()
        if not user_id:
            return jsonify({"error": "Authentication required"}), 401

        g.actor = Actor(
            id=user_id,
            username=(request.headers.get(USERNAME_HEADER) or "").strip() or None,
            role=(request.headers.get(USER_ROLE_HEADER) or "").strip() or None,
        )
        return f(*args, **kwargs)

    return decorated_function
