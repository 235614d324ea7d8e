"""Middleware for bearer-token authentication and tenant context."""
from datetime import datetime, timedelta, timezone
from functools import wraps
from typing import Optional

import jwt
from flask import current_app, g, request

from tradeflow.exceptions import ForbiddenError, UnauthorizedError

ROLES = ('customer', 'sales_rep', 'supervisor', 'tenant_admin', 'warehouse')


def issue_token(user_id: int, tenant_id: int, role: str, customer_id: Optional[int] = None,
                secret_key: Optional[str] = None, ttl_hours: Optional[int] = None,
                algorithm: str = 'HS256') -> str:
    """Mint a bearer token (CLI, tests and the external identity service use the same claims)."""
    if role not in ROLES:
        raise ValueError(f'Unknown role: {role}')
    if secret_key is None:
        secret_key = current_app.config['SECRET_KEY']
        ttl_hours = ttl_hours or current_app.config.get('TOKEN_TTL_HOURS', 24)
        algorithm = current_app.config.get('TOKEN_ALGORITHM', algorithm)

    payload = {
        'sub': str(user_id),
        'tenant_id': tenant_id,
        'role': role,
        'exp': datetime.now(timezone.utc) + timedelta(hours=ttl_hours or 24),
    }
    if customer_id is not None:
        payload['customer_id'] = customer_id
    return jwt.encode(payload, secret_key, algorithm=algorithm)


def load_request_context():
    """
    Populate ``g`` for the current request.

    Sets g.locale always and, when a valid bearer token is present,
    g.user_id, g.tenant_id, g.role and g.customer_id. An invalid token is
    remembered in g.auth_error and only reported by the auth decorators.
    """
    g.user_id = None
    g.tenant_id = None
    g.role = None
    g.customer_id = None
    g.auth_error = None
    g.locale = request.accept_languages.best_match(
        current_app.config.get('SUPPORTED_LOCALES', ('en',)),
        default=current_app.config.get('DEFAULT_LOCALE', 'en')
    )

    header = request.headers.get('Authorization', '')
    if not header.startswith('Bearer '):
        return
    token = header[len('Bearer '):].strip()

    try:
        payload = jwt.decode(
            token,
            current_app.config['SECRET_KEY'],
            algorithms=[current_app.config.get('TOKEN_ALGORITHM', 'HS256')]
        )
        user_id = int(payload['sub'])
        tenant_id = int(payload['tenant_id'])
        role = payload['role']
    except jwt.ExpiredSignatureError:
        g.auth_error = 'Token expired'
        return
    except (jwt.InvalidTokenError, KeyError, TypeError, ValueError):
        g.auth_error = 'Invalid token'
        return

    if role not in ROLES:
        g.auth_error = 'Invalid token'
        return

    g.user_id = user_id
    g.tenant_id = tenant_id
    g.role = role
    customer_id = payload.get('customer_id')
    g.customer_id = int(customer_id) if customer_id is not None else None


def require_auth(f):
    """Decorator: require a valid bearer token."""
    @wraps(f)
    def decorated_function(*args, **kwargs):
        if g.get('user_id') is None or g.get('tenant_id') is None:
            raise UnauthorizedError(g.get('auth_error') or 'Authentication required')
        return f(*args, **kwargs)
    return decorated_function


def require_customer(f):
    """Decorator: customer-portal token bound to a customer."""
    @wraps(f)
    @require_auth
    def decorated_function(*args, **kwargs):
        if g.role != 'customer' or g.customer_id is None:
            raise ForbiddenError('Customer account required')
        return f(*args, **kwargs)
    return decorated_function


def require_role(*roles):
    """
    Decorator: require one of ``roles``.

    Must be used on views only; it includes the authentication check.
    """
    def decorator(f):
        @wraps(f)
        @require_auth
        def decorated_function(*args, **kwargs):
            if g.role not in roles:
                raise ForbiddenError(f'Requires role: {", ".join(roles)}')
            return f(*args, **kwargs)
        return decorated_function
    return decorator
