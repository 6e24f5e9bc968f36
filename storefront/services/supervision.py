# storefront/services/supervision.py
import logging
from typing import Any, Dict, List, Optional

from config.database import session_scope
from storefront.repositories.chat_repository import ChatRepository
from storefront.services.room_router import ADMIN_ROOM, RoomRouter

logger = logging.getLogger(__name__)


class AdminSupervisionView:
    """Lecturas de los admins: lista de sesiones por recencia e historial por sesion"""

    def __init__(self, session_factory, router: RoomRouter):
        self.session_factory = session_factory
        self.router = router

    def list_chats(self) -> List[Dict[str, Any]]:
        with session_scope(self.session_factory) as db_session:
            chats = ChatRepository(db_session).list_sessions()
            return [chat.to_dict() for chat in chats]

    def message_history(self, chat_id: str) -> Optional[List[Dict[str, Any]]]:
        """Historial ascendente; None si la sesion no existe"""
        with session_scope(self.session_factory) as db_session:
            repo = ChatRepository(db_session)
            if not repo.find_session_by_id(chat_id):
                return None
            return [message.to_dict() for message in repo.find_messages(chat_id)]

    def send_chat_list(self, sid: str) -> List[Dict[str, Any]]:
        chats = self.list_chats()
        self.router.send(sid, 'admin_chat_list', chats)
        return chats

    def open_history(self, sid: str, chat_id: str) -> Optional[List[Dict[str, Any]]]:
        """Une al admin a la sala de la sesion y le envia el historial"""
        with session_scope(self.session_factory) as db_session:
            repo = ChatRepository(db_session)
            if not repo.find_session_by_id(chat_id):
                logger.info(f"History requested for unknown chat {chat_id} by {sid}")
                return None
            # Join antes de leer: lo que llegue despues se recibe en vivo
            self.router.join(sid, chat_id)
            if not self.router.is_open(sid):
                return None
            history = [message.to_dict() for message in repo.find_messages(chat_id)]

        self.router.send(sid, 'chat_history', history)
        return history

    def refresh_admins(self, chat_id: str) -> None:
        """Avisa a la sala de admins que un usuario escribio"""
        chats = self.list_chats()
        self.router.broadcast(ADMIN_ROOM, 'admin_chat_list', chats)
        self.router.broadcast(ADMIN_ROOM, 'new_user_message', {'chatId': chat_id})
