# storefront/models/user.py
import uuid
from datetime import datetime, timezone

from sqlalchemy import Column, String, DateTime
from config.database import Base


def utcnow():
    return datetime.now(timezone.utc).replace(tzinfo=None)


def new_id():
    return uuid.uuid4().hex


class TblUser(Base):
    __tablename__ = 'users'

    id = Column(String(32), primary_key=True, default=new_id)
    name = Column(String(120), nullable=False)
    email = Column(String(255), unique=True, nullable=False)
    password_hash = Column(String(255), nullable=False)
    role = Column(String(20), nullable=False, default='user')  # 'user', 'admin'
    created_at = Column(DateTime, default=utcnow)

    def to_dict(self):
        return {
            "id": self.id,
            "name": self.name,
            "email": self.email,
            "role": self.role,
        }

    def __repr__(self):
        return f"<TblUser(id={self.id}, email='{self.email}', role='{self.role}')>"
