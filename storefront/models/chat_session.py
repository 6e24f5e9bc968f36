# storefront/models/chat_session.py
from sqlalchemy import Column, Integer, String, Text, DateTime, ForeignKey
from config.database import Base
from storefront.models.user import new_id, utcnow


def isoformat(value):
    return value.isoformat() if value else None


class TblChatSession(Base):
    __tablename__ = 'chat_sessions'

    id = Column(String(32), primary_key=True, default=new_id)
    user_id = Column(String(32), ForeignKey('users.id'), unique=True, nullable=False)  # una sesion por usuario
    user_name = Column(String(120), nullable=False)
    user_email = Column(String(255), nullable=False)
    last_message = Column(Text, nullable=True)
    last_message_time = Column(DateTime, default=utcnow, nullable=False)
    last_message_id = Column(Integer, nullable=True)  # mensaje reflejado en el resumen
    status = Column(String(20), default='active', nullable=False)
    created_at = Column(DateTime, default=utcnow)

    def to_dict(self):
        return {
            "id": self.id,
            "userId": self.user_id,
            "userName": self.user_name,
            "userEmail": self.user_email,
            "lastMessage": self.last_message,
            "lastMessageTime": isoformat(self.last_message_time),
            "updatedAt": isoformat(self.last_message_time),
            "status": self.status,
            "createdAt": isoformat(self.created_at),
        }

    def __repr__(self):
        return f"<TblChatSession(id={self.id}, user_id={self.user_id}, status='{self.status}')>"
