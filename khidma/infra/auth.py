"""
Unified authentication infrastructure module.

Bearer tokens are JWTs issued for a user id (Flask-JWT-Extended). Routes use
the auth_required decorator; services receive the resolved User.
"""
from functools import wraps

from flask import g, request
from flask_jwt_extended import (
    JWTManager,
    create_access_token,
    get_jwt_identity,
    verify_jwt_in_request,
)

from khidma.services.structured_logging import get_logger
from khidma.middleware.errors import AuthenticationError, error_response
from khidma.services.request_context import set_user_context

logger = get_logger('khidma.auth')


def init_auth(app) -> JWTManager:
    """Attach JWT handling and route its failures through the error mapping."""
    jwt = JWTManager(app)

    @jwt.unauthorized_loader
    def _missing_token(reason):
        logger.log_auth_event('bearer', success=False, failure_reason=reason)
        return error_response(AuthenticationError("No authorization header"))

    @jwt.invalid_token_loader
    def _invalid_token(reason):
        logger.log_auth_event('bearer', success=False, failure_reason=reason)
        return error_response(AuthenticationError(f"Auth error: {reason}"))

    @jwt.expired_token_loader
    def _expired_token(jwt_header, jwt_payload):
        logger.log_auth_event('bearer', success=False, failure_reason='expired')
        return error_response(AuthenticationError("Auth error: token has expired"))

    return jwt


def issue_token(user) -> str:
    """Access token for user; used by the auth provider bridge and tests."""
    return create_access_token(identity=user.id, additional_claims={"email": user.email})


def current_user():
    """Resolve the User behind the verified bearer token."""
    from khidma.models import User
    from khidma.infra.db import db

    verify_jwt_in_request()
    user_id = get_jwt_identity()
    user = db.session.get(User, user_id) if user_id else None
    if user is None or not user.email:
        logger.log_auth_event('bearer', success=False, failure_reason='unknown_user')
        raise AuthenticationError("User not authenticated")

    set_user_context(user.id)
    logger.log_auth_event('bearer', success=True, user_id=user.id)
    return user


def auth_required(fn):
    """Require a valid bearer token; CORS preflight passes through."""
    @wraps(fn)
    def wrapper(*args, **kwargs):
        if request.method == "OPTIONS":
            return ("", 200)
        g.current_user = current_user()
        return fn(*args, **kwargs)
    return wrapper
