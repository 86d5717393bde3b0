# Session authentication: JWT cookie issue/clear, loaders and socket token checks
import logging
from flask import current_app, jsonify
from flask_jwt_extended import (
    create_access_token,
    decode_token,
    set_access_cookies,
    unset_jwt_cookies,
)
from jwt.exceptions import PyJWTError
from flask_jwt_extended.exceptions import JWTExtendedException
from .errors import AuthenticationFailure

logger = logging.getLogger(__name__)

UNAUTHORIZED_MESSAGE = 'Unauthorized - Invalid or missing session'


def credential_store():
    return current_app.extensions['duochat.credentials']()


def issue_session(response, user) -> str:
    token = create_access_token(identity=str(user.id))
    set_access_cookies(response, token)
    logger.debug(f'Issued session for user id={user.id}')
    return token


def clear_session(response):
    unset_jwt_cookies(response)


def authenticate_token(token):
    """Resolve a raw session token to its user or raise ``AuthenticationFailure``."""
    if not token:
        raise AuthenticationFailure(UNAUTHORIZED_MESSAGE)
    try:
        claims = decode_token(token)
    except (PyJWTError, JWTExtendedException) as e:
        logger.debug(f'Rejected session token: {e.__class__.__name__}')
        raise AuthenticationFailure(UNAUTHORIZED_MESSAGE) from e
    user = credential_store().find_by_id(claims.get('sub'))
    if user is None:
        logger.debug('Rejected session token for unknown user')
        raise AuthenticationFailure(UNAUTHORIZED_MESSAGE)
    return user


def _unauthorized(reason):
    logger.debug(f'Unauthorized request: {reason}')
    return jsonify({'message': UNAUTHORIZED_MESSAGE}), 401


def init_auth(jwt):
    """Register the flask-jwt-extended callbacks on ``jwt``."""

    @jwt.user_lookup_loader
    def load_user(_jwt_header, jwt_data):
        return credential_store().find_by_id(jwt_data['sub'])

    @jwt.user_lookup_error_loader
    def user_missing(_jwt_header, jwt_data):
        return _unauthorized(f'user {jwt_data.get("sub")} no longer exists')

    @jwt.unauthorized_loader
    def missing_token(reason):
        return _unauthorized(reason)

    @jwt.invalid_token_loader
    def invalid_token(reason):
        return _unauthorized(reason)

    @jwt.expired_token_loader
    def expired_token(_jwt_header, _jwt_data):
        return _unauthorized('token expired')
