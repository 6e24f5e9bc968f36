# config/database.py
from contextlib import contextmanager

from sqlalchemy import create_engine
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import declarative_base, sessionmaker
from sqlalchemy.pool import StaticPool

from storefront.errors import PersistenceFailure

Base = declarative_base()


def build_engine(database_url: str):
    """Crea el engine; SQLite en memoria comparte una sola conexion entre hilos"""
    if database_url.startswith('sqlite'):
        options = {'connect_args': {'check_same_thread': False}}
        if database_url in ('sqlite://', 'sqlite:///:memory:'):
            options['poolclass'] = StaticPool
        return create_engine(database_url, **options)
    return create_engine(database_url, pool_pre_ping=True)


def build_session_factory(engine):
    return sessionmaker(bind=engine, autoflush=False, expire_on_commit=False)


@contextmanager
def session_scope(session_factory):
    """Abre una sesion de BD; cualquier error de SQLAlchemy sale como PersistenceFailure"""
    db_session = session_factory()
    try:
        yield db_session
    except SQLAlchemyError as e:
        db_session.rollback()
        raise PersistenceFailure(str(e)) from e
    finally:
        db_session.close()
