#!/usr/bin/env python3
"""
Crea una cuenta admin o promueve un usuario existente a admin
Uso: python scripts/create_admin.py --email admin@tienda.com [--name "Soporte"] [--password secreto]
"""

import sys
import argparse
import getpass
import logging
from pathlib import Path

# Agregar el directorio raíz al path
sys.path.insert(0, str(Path(__file__).parent.parent))

from dotenv import load_dotenv
from werkzeug.security import generate_password_hash

# Cargar variables de entorno
load_dotenv()

# Configurar logging
logging.basicConfig(
    level=logging.INFO,
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
)

from config.settings import Config
from config.database import Base, build_engine, build_session_factory, session_scope
from storefront.errors import PersistenceFailure
from storefront.models.user import TblUser
from storefront.models.chat_session import TblChatSession  # noqa: F401
from storefront.models.chat_message import TblChatMessage  # noqa: F401
from storefront.repositories.user_repository import UserRepository


def create_or_promote_admin(session_factory, email: str, name: str = None, password: str = None) -> TblUser:
    """Promueve el usuario si existe; si no, lo crea con rol admin"""
    email = email.strip().lower()
    with session_scope(session_factory) as db_session:
        repo = UserRepository(db_session)
        user = repo.find_by_email(email)

        if user:
            user.role = 'admin'
            if name:
                user.name = name
            if password:
                user.password_hash = generate_password_hash(password)
            return repo.save(user)

        if not password:
            raise ValueError("A password is required to create a new admin account")

        return repo.save(TblUser(
            name=name or email.split('@')[0],
            email=email,
            password_hash=generate_password_hash(password),
            role='admin'
        ))


def main(argv=None):
    parser = argparse.ArgumentParser(description='Crear o promover una cuenta admin del chat de soporte')
    parser.add_argument('--email', required=True, help='Email de la cuenta')
    parser.add_argument('--name', help='Nombre visible')
    parser.add_argument('--password', help='Password (se pide por consola si la cuenta es nueva)')
    parser.add_argument('--database-url', default=Config.DATABASE_URL, help='URL de la base de datos')
    args = parser.parse_args(argv)

    engine = build_engine(args.database_url)
    Base.metadata.create_all(bind=engine)
    session_factory = build_session_factory(engine)

    password = args.password
    try:
        with session_scope(session_factory) as db_session:
            exists = UserRepository(db_session).find_by_email(args.email) is not None
        if not exists and not password:
            password = getpass.getpass('Password: ')

        user = create_or_promote_admin(session_factory, args.email, args.name, password)
    except (ValueError, PersistenceFailure) as e:
        print(f"❌ Error: {e}")
        return 1

    print(f"✅ Admin listo: {user.email} (id={user.id})")
    return 0


if __name__ == '__main__':
    sys.exit(main())
