# storefront/models/chat_message.py
from sqlalchemy import Column, Integer, String, Text, DateTime, Boolean, ForeignKey
from config.database import Base
from storefront.models.chat_session import isoformat
from storefront.models.user import utcnow


class TblChatMessage(Base):
    __tablename__ = 'chat_messages'

    id = Column(Integer, primary_key=True, autoincrement=True)  # orden de insercion
    chat_id = Column(String(32), ForeignKey('chat_sessions.id'), nullable=False, index=True)
    sender_id = Column(String(32), nullable=False)
    sender_name = Column(String(120), nullable=False)
    message = Column(Text, nullable=False)
    is_admin = Column(Boolean, default=False, nullable=False)
    created_at = Column(DateTime, default=utcnow, nullable=False)

    def to_dict(self):
        return {
            "id": self.id,
            "chatId": self.chat_id,
            "senderId": self.sender_id,
            "senderName": self.sender_name,
            "message": self.message,
            "isAdmin": self.is_admin,
            "createdAt": isoformat(self.created_at),
        }

    def __repr__(self):
        return f"<TblChatMessage(id={self.id}, chat_id={self.chat_id}, admin={self.is_admin})>"
