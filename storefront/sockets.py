# storefront/sockets.py
import functools
import logging

from flask import request
from flask_socketio import ConnectionRefusedError

from storefront.errors import (
    AuthenticationFailure,
    AuthorizationViolation,
    InvalidPayload,
    PersistenceFailure,
    RoleViolation,
)
from storefront.services.auth_gate import bearer_token

logger = logging.getLogger(__name__)

GENERIC_ERROR = 'Unable to process request'


def register_chat_events(socketio, gate, manager):
    """Registra los eventos del chat de soporte en el servidor SocketIO"""

    def contained(handler):
        # Los errores de un evento nunca salen al runtime ni afectan otras conexiones
        @functools.wraps(handler)
        def wrapper(*args):
            sid = request.sid
            try:
                return handler(*args)
            except (AuthorizationViolation, RoleViolation) as e:
                logger.warning(f"Dropped '{handler.__name__}' from {sid}: {e}")
            except InvalidPayload as e:
                manager.router.send(sid, 'chat_error', {'message': str(e)})
            except PersistenceFailure as e:
                logger.error(f"Persistence error in '{handler.__name__}' from {sid}: {e}")
                manager.router.send(sid, 'chat_error', {'message': GENERIC_ERROR})
            except Exception:
                logger.exception(f"Unexpected error in '{handler.__name__}' from {sid}")
                manager.router.send(sid, 'chat_error', {'message': GENERIC_ERROR})
        return wrapper

    @socketio.on('connect')
    def handle_connect(auth=None):
        """Authenticate the handshake, then route the connection by role"""
        token = auth.get('token') if isinstance(auth, dict) else None
        if not token:
            token = bearer_token(request.headers.get('Authorization'))

        try:
            identity = gate.authenticate(token)
            manager.connect(request.sid, identity)
        except AuthenticationFailure as e:
            logger.warning(f"Connection rejected {request.sid}: {e}")
            raise ConnectionRefusedError('Authentication error')
        except PersistenceFailure as e:
            logger.error(f"Connection {request.sid} aborted, chat store unavailable: {e}")
            raise ConnectionRefusedError('Chat unavailable')

        logger.info(f"Client connected: {identity.name} ({identity.role.value}) sid={request.sid}")

    @socketio.on('disconnect')
    def handle_disconnect(*args):
        """Handle client disconnection"""
        connection = manager.disconnect(request.sid)
        if connection:
            logger.info(f"Client disconnected: {connection.identity.name} sid={request.sid}")

    @socketio.on('send_message')
    @contained
    def handle_send_message(data=None):
        data = data if isinstance(data, dict) else {}
        manager.send_message(request.sid, data.get('chatId'), data.get('message'))

    @socketio.on('get_chats')
    @contained
    def handle_get_chats(data=None):
        manager.get_chats(request.sid)

    @socketio.on('get_messages')
    @contained
    def handle_get_messages(data=None):
        data = data if isinstance(data, dict) else {}
        manager.get_messages(request.sid, data.get('chatId'))
