"""
Principal resolution for API routes.

Tokens are HS256 JWTs carrying the user id, email and role. The decorators
below resolve the caller into a ``Principal`` and attach it to ``flask.g``;
services only ever see the Principal, never the credential.
"""
from dataclasses import dataclass
from datetime import datetime, timedelta
from functools import wraps

from flask import current_app, g, request
from jose import ExpiredSignatureError, JWTError, jwt

from errors import AuthenticationError, Forbidden
from models import Role, User, db


@dataclass(frozen=True)
class Principal:
    id: int
    role: Role

    @classmethod
    def from_user(cls, user):
        return cls(id=user.id, role=user.role_enum)

    @property
    def is_client(self):
        return self.role is Role.CLIENT

    @property
    def is_freelancer(self):
        return self.role is Role.FREELANCER


def require_role(principal, role, message=None):
    """Raise Forbidden unless ``principal`` has exactly ``role``"""
    if principal.role is Role.CLIENT:
        allowed = role is Role.CLIENT
    elif principal.role is Role.FREELANCER:
        allowed = role is Role.FREELANCER
    else:
        raise AssertionError(f"Unhandled role: {principal.role!r}")
    if not allowed:
        raise Forbidden(message or f'Only {role.value}s can perform this action')


def issue_token(user):
    """Create a signed access token for ``user``"""
    config = current_app.config
    now = datetime.utcnow()
    claims = {
        'sub': str(user.id),
        'email': user.email,
        'role': user.role,
        'iat': now,
        'exp': now + timedelta(days=config['JWT_EXPIRES_DAYS']),
    }
    return jwt.encode(claims, config['JWT_SECRET'], algorithm=config['JWT_ALGORITHM'])


def decode_token(token):
    config = current_app.config
    try:
        return jwt.decode(token, config['JWT_SECRET'], algorithms=[config['JWT_ALGORITHM']])
    except ExpiredSignatureError:
        raise AuthenticationError('Token has expired') from None
    except JWTError:
        raise AuthenticationError('Invalid token') from None


def extract_token():
    header = request.headers.get('Authorization', '')
    if header.startswith('Bearer '):
        return header.split(' ', 1)[1].strip() or None
    return None


def resolve_principal(token):
    """Turn a bearer token into (user, Principal); raises on any problem"""
    claims = decode_token(token)
    try:
        user_id = int(claims.get('sub'))
    except (TypeError, ValueError):
        raise AuthenticationError('Invalid token') from None

    user = db.session.get(User, user_id)
    if not user:
        raise AuthenticationError('User not found')
    if not user.is_active:
        raise Forbidden('Account is deactivated')
    try:
        return user, Principal.from_user(user)
    except ValueError:
        raise AuthenticationError('Invalid token') from None


def token_required(f):
    """Decorator to require a valid bearer token for API routes"""
    @wraps(f)
    def decorated_function(*args, **kwargs):
        token = extract_token()
        if not token:
            raise AuthenticationError('Authorization required')
        g.current_user, g.principal = resolve_principal(token)
        return f(*args, **kwargs)
    return decorated_function


def token_optional(f):
    """Decorator that resolves the caller if a usable token is present"""
    @wraps(f)
    def decorated_function(*args, **kwargs):
        g.current_user, g.principal = None, None
        token = extract_token()
        if token:
            try:
                g.current_user, g.principal = resolve_principal(token)
            except (AuthenticationError, Forbidden):
                current_app.logger.debug('Ignoring unusable token on optional-auth route')
        return f(*args, **kwargs)
    return decorated_function
