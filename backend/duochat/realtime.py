# Socket.IO connection handling and server pushes
from flask import current_app, request
from . import socketio
from .auth import authenticate_token
from .errors import AuthenticationFailure

ONLINE_USERS_EVENT = 'getOnlineUsers'


def connection_registry():
    return current_app.extensions['duochat.registry']


def push(handle, event, payload):
    """Emit ``event`` to one live connection."""
    socketio.emit(event, payload, to=handle)


def _broadcast_presence(registry):
    socketio.emit(ONLINE_USERS_EVENT, registry.online_identities())


def _connection_token(auth):
    if isinstance(auth, dict) and auth.get('token'):
        return auth['token']
    return request.cookies.get(current_app.config['JWT_ACCESS_COOKIE_NAME'])


@socketio.on('connect')
def on_connect(auth=None):
    try:
        user = authenticate_token(_connection_token(auth))
    except AuthenticationFailure:
        current_app.logger.debug(f'Refused socket connection {request.sid}')
        return False
    registry = connection_registry()
    registry.register(user.id, request.sid)
    current_app.logger.info(f'User {user.id} connected ({request.sid})')
    _broadcast_presence(registry)


@socketio.on('disconnect')
def on_disconnect(reason=None):
    registry = connection_registry()
    identity = registry.identity_of(request.sid)
    if identity is None:
        return
    registry.unregister(identity, request.sid)
    current_app.logger.info(f'User {identity} disconnected ({request.sid})')
    _broadcast_presence(registry)
