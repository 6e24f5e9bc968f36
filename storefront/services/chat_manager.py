# storefront/services/chat_manager.py
import logging
import threading
from dataclasses import dataclass
from enum import Enum
from typing import Any, Dict, Optional

from config.database import session_scope
from storefront.errors import AuthorizationViolation, InvalidPayload, RoleViolation
from storefront.repositories.chat_repository import ChatRepository
from storefront.services.auth_gate import Identity
from storefront.services.room_router import ADMIN_ROOM, RoomRouter
from storefront.services.supervision import AdminSupervisionView

logger = logging.getLogger(__name__)


class ChatState(str, Enum):
    UNINITIALIZED = 'uninitialized'
    READY = 'ready'
    ACTIVE = 'active'


@dataclass
class Connection:
    sid: str
    identity: Identity
    behavior: 'ChatBehavior'
    state: ChatState = ChatState.UNINITIALIZED
    chat_id: Optional[str] = None


class ChatBehavior:
    """Comportamiento por rol, elegido una vez al conectar"""

    def __init__(self, manager: 'ChatSessionManager'):
        self.manager = manager

    def on_connect(self, connection: Connection) -> None:
        raise NotImplementedError

    def send_message(self, connection: Connection, chat_id: str, body: str) -> Optional[Dict[str, Any]]:
        raise NotImplementedError

    def get_chats(self, connection: Connection):
        raise RoleViolation(f"{connection.identity.user_id} is not allowed to list chats")

    def get_messages(self, connection: Connection, chat_id: str):
        raise RoleViolation(f"{connection.identity.user_id} is not allowed to read chat {chat_id}")


class UserChatBehavior(ChatBehavior):

    def on_connect(self, connection: Connection) -> None:
        identity = connection.identity
        with session_scope(self.manager.session_factory) as db_session:
            chat = ChatRepository(db_session).find_or_create_session(
                identity.user_id, identity.name, identity.email
            )
            chat_id = chat.id

        connection.chat_id = chat_id
        self.manager.router.join(connection.sid, chat_id)
        connection.state = ChatState.READY
        self.manager.router.send(connection.sid, 'chat_ready', {'chatId': chat_id})
        logger.info(f"Chat {chat_id} ready for user {identity.user_id}")

    def send_message(self, connection: Connection, chat_id: str, body: str) -> Optional[Dict[str, Any]]:
        if chat_id != connection.chat_id:
            raise AuthorizationViolation(
                f"user {connection.identity.user_id} tried to write to chat {chat_id}"
            )
        payload = self.manager.deliver(connection, chat_id, body, owner_id=connection.identity.user_id)
        if payload:
            self.manager.supervision.refresh_admins(chat_id)
        return payload


class AdminChatBehavior(ChatBehavior):

    def on_connect(self, connection: Connection) -> None:
        self.manager.router.join(connection.sid, ADMIN_ROOM)
        connection.state = ChatState.READY
        self.manager.supervision.send_chat_list(connection.sid)

    def send_message(self, connection: Connection, chat_id: str, body: str) -> Optional[Dict[str, Any]]:
        return self.manager.deliver(connection, chat_id, body)

    def get_chats(self, connection: Connection):
        return self.manager.supervision.send_chat_list(connection.sid)

    def get_messages(self, connection: Connection, chat_id: str):
        if not isinstance(chat_id, str) or not chat_id:
            raise InvalidPayload('chatId is required')
        return self.manager.supervision.open_history(connection.sid, chat_id)


class ChatSessionManager:
    """
    Maneja el ciclo de vida del chat por conexion.

    Los mensajes se persisten (insert + resumen en una transaccion) y recien
    despues se difunden a la sala de la sesion.
    """

    def __init__(self, session_factory, router: RoomRouter, supervision: AdminSupervisionView,
                 message_max_length: int = 2000):
        self.session_factory = session_factory
        self.router = router
        self.supervision = supervision
        self.message_max_length = message_max_length
        self._lock = threading.Lock()
        self._connections: Dict[str, Connection] = {}
        self._chat_locks: Dict[str, threading.Lock] = {}
        self._user_behavior = UserChatBehavior(self)
        self._admin_behavior = AdminChatBehavior(self)

    def behavior_for(self, identity: Identity) -> ChatBehavior:
        return self._admin_behavior if identity.is_admin else self._user_behavior

    def connect(self, sid: str, identity: Identity) -> Connection:
        connection = Connection(sid=sid, identity=identity, behavior=self.behavior_for(identity))
        self.router.open(sid)
        try:
            connection.behavior.on_connect(connection)
        except Exception:
            self.router.leave_all(sid)
            raise
        with self._lock:
            # Una desconexion durante el setup ya cerro el sid en el router
            if self.router.is_open(sid):
                self._connections[sid] = connection
        return connection

    def disconnect(self, sid: str) -> Optional[Connection]:
        with self._lock:
            connection = self._connections.pop(sid, None)
            self.router.leave_all(sid)
        return connection

    def connection(self, sid: str) -> Optional[Connection]:
        with self._lock:
            return self._connections.get(sid)

    def send_message(self, sid: str, chat_id: Any, body: Any) -> Optional[Dict[str, Any]]:
        connection = self.connection(sid)
        if connection is None:
            logger.debug(f"send_message from unknown connection {sid}")
            return None
        body = self._validate_message(chat_id, body)
        return connection.behavior.send_message(connection, chat_id, body)

    def get_chats(self, sid: str):
        connection = self.connection(sid)
        if connection is None:
            return None
        return connection.behavior.get_chats(connection)

    def get_messages(self, sid: str, chat_id: Any):
        connection = self.connection(sid)
        if connection is None:
            return None
        return connection.behavior.get_messages(connection, chat_id)

    def deliver(self, connection: Connection, chat_id: str, body: str,
                owner_id: Optional[str] = None) -> Optional[Dict[str, Any]]:
        """Persiste el mensaje y lo difunde a la sala de la sesion"""
        identity = connection.identity
        # Un escritor por sesion: id, timestamp y resumen avanzan juntos
        with self._chat_lock(chat_id):
            with session_scope(self.session_factory) as db_session:
                repo = ChatRepository(db_session)
                chat = repo.find_session_by_id(chat_id)
                if chat is None:
                    logger.info(f"Message for unknown chat {chat_id} from {connection.sid} dropped")
                    return None
                if owner_id is not None and chat.user_id != owner_id:
                    raise AuthorizationViolation(f"user {owner_id} does not own chat {chat_id}")

                message = repo.append_message(
                    chat,
                    sender_id=identity.user_id,
                    sender_name=identity.name,
                    body=body,
                    is_admin=identity.is_admin
                )
                payload = message.to_dict()

            connection.state = ChatState.ACTIVE
            self.router.broadcast(chat_id, 'receive_message', payload)
        return payload

    def _chat_lock(self, chat_id: str) -> threading.Lock:
        with self._lock:
            return self._chat_locks.setdefault(chat_id, threading.Lock())

    def _validate_message(self, chat_id: Any, body: Any) -> str:
        if not isinstance(chat_id, str) or not chat_id:
            raise InvalidPayload('chatId is required')
        if not isinstance(body, str) or not body.strip():
            raise InvalidPayload('Message cannot be empty')
        if len(body) > self.message_max_length:
            raise InvalidPayload(f'Message exceeds {self.message_max_length} characters')
        return body
