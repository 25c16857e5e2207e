# Overview: Request decorators for API routes.

from functools import wraps
from flask import request, jsonify, g


ACTOR_HEADER = "X-Actor-Id"


def _parse_actor(raw: str | None) -> int | None:
    if not raw:
        return None
    try:
        actor_id = int(raw.strip())
    except ValueError:
        return None
    return actor_id if actor_id > 0 else None


def require_actor(f):
    """
    Require a caller identity and expose it as g.actor_id.

    Authentication and role resolution happen upstream (identity provider /
    gateway). The engine trusts the forwarded identity and only checks that
    one is present; it is stamped on shifts and movements as opener, closer
    or actor.

    Returns 401 if the X-Actor-Id header is missing or not a positive integer.
    """
    @wraps(f)
    def decorated_function(*args, **kwargs):
        actor_id = _parse_actor(request.headers.get(ACTOR_HEADER))
        if actor_id is None:
            return jsonify({"error": f"{ACTOR_HEADER} header with a user id is required"}), 401

        g.actor_id = actor_id
        return f(*args, **kwargs)

    return decorated_function


def require_json(f):
    """Reject requests whose body is not a JSON object."""
    @wraps(f)
    def decorated_function(*args, **kwargs):
        data = request.get_json(silent=True)
        if not isinstance(data, dict):
            return jsonify({"error": "JSON object body required"}), 400
        return f(*args, **kwargs)

    return decorated_function
