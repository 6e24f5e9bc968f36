# storefront/repositories/user_repository.py
from typing import Optional
from sqlalchemy.orm import Session
from storefront.models.user import TblUser


class UserRepository:
    def __init__(self, db_session: Session):
        self.db_session = db_session

    def save(self, user: TblUser) -> TblUser:
        """Guarda un usuario nuevo o modificado"""
        self.db_session.add(user)
        self.db_session.commit()
        self.db_session.refresh(user)
        return user

    def find_by_id(self, id: str) -> Optional[TblUser]:
        return self.db_session.query(TblUser).filter(TblUser.id == id).first()

    def find_by_email(self, email: str) -> Optional[TblUser]:
        return self.db_session.query(TblUser).filter(TblUser.email == email.strip().lower()).first()
