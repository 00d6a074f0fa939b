from collections.abc import Callable
from functools import wraps
from typing import Any

from flask import abort, g

from app.fjv.constants import ROL_ADMIN
from app.fjv.models import Usuario


def user_has_role(user: Usuario | None, *role_names: str) -> bool:
    if not user or not user.is_active:
        return False
    return user.rol_nombre in role_names


def is_admin(user: Usuario | None) -> bool:
    return user_has_role(user, ROL_ADMIN)


def current_user() -> Usuario | None:
    return getattr(g, "current_user", None)


def require_auth(fn: Callable[..., Any]) -> Callable[..., Any]:
    @wraps(fn)
    def wrapped(*args: Any, **kwargs: Any):
        user = current_user()
        if not user or not user.is_active:
            abort(401)
        return fn(*args, **kwargs)

    return wrapped


def require_role(*role_names: str) -> Callable[[Callable[..., Any]], Callable[..., Any]]:
    def decorator(fn: Callable[..., Any]) -> Callable[..., Any]:
        @wraps(fn)
        def wrapped(*args: Any, **kwargs: Any):
            user = current_user()
            # Unauthenticated -> 401, authenticated but unauthorized -> 403
            if not user or not user.is_active:
                abort(401)
            if not user_has_role(user, *role_names):
                g.missing_role = ",".join(role_names)
                abort(403)
            return fn(*args, **kwargs)

        return wrapped

    return decorator


require_admin = require_role(ROL_ADMIN)
