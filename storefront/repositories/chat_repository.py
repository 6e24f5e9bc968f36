# storefront/repositories/chat_repository.py
from typing import List, Optional
from sqlalchemy.orm import Session
from sqlalchemy import desc, or_
from sqlalchemy.exc import IntegrityError
from storefront.models.chat_session import TblChatSession
from storefront.models.chat_message import TblChatMessage
from storefront.models.user import utcnow


class ChatRepository:
    def __init__(self, db_session: Session):
        self.db_session = db_session

    def find_session_by_id(self, chat_id: str) -> Optional[TblChatSession]:
        return self.db_session.query(TblChatSession).filter(TblChatSession.id == chat_id).first()

    def find_session_by_user(self, user_id: str) -> Optional[TblChatSession]:
        return self.db_session.query(TblChatSession).filter(TblChatSession.user_id == user_id).first()

    def find_or_create_session(self, user_id: str, user_name: str, user_email: str) -> TblChatSession:
        """Busca la sesion del usuario o la crea; nunca hay dos por usuario"""
        chat = self.find_session_by_user(user_id)
        if chat:
            return chat

        chat = TblChatSession(
            user_id=user_id,
            user_name=user_name,
            user_email=user_email,
            status='active'
        )
        self.db_session.add(chat)
        try:
            self.db_session.commit()
        except IntegrityError:
            # Otra conexion del mismo usuario la creo primero
            self.db_session.rollback()
            chat = self.find_session_by_user(user_id)
            if chat is None:
                raise
        return chat

    def list_sessions(self) -> List[TblChatSession]:
        """Todas las sesiones, la de actividad mas reciente primero"""
        return self.db_session.query(TblChatSession).order_by(
            desc(TblChatSession.last_message_time),
            desc(TblChatSession.created_at)
        ).all()

    def find_messages(self, chat_id: str) -> List[TblChatMessage]:
        """Historial completo en orden de insercion"""
        return self.db_session.query(TblChatMessage).filter(
            TblChatMessage.chat_id == chat_id
        ).order_by(TblChatMessage.id).all()

    def append_message(self, chat: TblChatSession, sender_id: str, sender_name: str,
                       body: str, is_admin: bool) -> TblChatMessage:
        """Inserta el mensaje y actualiza el resumen de la sesion en una sola transaccion"""
        # Fila de la sesion bloqueada antes de leer el reloj y asignar el id
        locked = self.db_session.query(TblChatSession).filter(
            TblChatSession.id == chat.id
        ).with_for_update().populate_existing().one()

        created_at = utcnow()
        if locked.last_message_time and locked.last_message_time > created_at:
            created_at = locked.last_message_time

        message = TblChatMessage(
            chat_id=chat.id,
            sender_id=sender_id,
            sender_name=sender_name,
            message=body,
            is_admin=is_admin,
            created_at=created_at
        )
        self.db_session.add(message)
        self.db_session.flush()

        # El resumen solo avanza: un insert mas viejo nunca pisa a uno mas nuevo
        self.db_session.query(TblChatSession).filter(
            TblChatSession.id == chat.id,
            or_(
                TblChatSession.last_message_id.is_(None),
                TblChatSession.last_message_id < message.id
            )
        ).update({
            TblChatSession.last_message: body,
            TblChatSession.last_message_time: created_at,
            TblChatSession.last_message_id: message.id,
            TblChatSession.status: 'active'
        }, synchronize_session=False)

        self.db_session.commit()
        return message
