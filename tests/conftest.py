"""Shared fixtures for the support chat tests."""

import pytest
from werkzeug.security import generate_password_hash

from app import create_app
from config.database import Base, build_engine, build_session_factory, session_scope
from config.settings import Config
from storefront.models.user import TblUser
from storefront.models.chat_session import TblChatSession  # noqa: F401
from storefront.models.chat_message import TblChatMessage  # noqa: F401
from storefront.repositories.user_repository import UserRepository
from storefront.services.auth_gate import Identity, Role
from storefront.services.chat_manager import ChatSessionManager
from storefront.services.room_router import RoomRouter
from storefront.services.supervision import AdminSupervisionView


class ChatTestConfig(Config):
    TESTING = True
    DATABASE_URL = 'sqlite://'
    JWT_SECRET = 'test-secret-for-the-support-chat-suite'
    JWT_EXPIRATION_SECONDS = 600
    SOCKETIO_ASYNC_MODE = 'threading'
    MESSAGE_MAX_LENGTH = 50


class RecordingEmitter:
    """Stands in for the socket server: records (sid, event, payload)."""

    def __init__(self):
        self.sent = []
        self.failing = set()

    def __call__(self, event, payload, sid):
        if sid in self.failing:
            raise RuntimeError("socket closed")
        self.sent.append((sid, event, payload))

    def events(self, sid, event=None):
        return [p for s, e, p in self.sent if s == sid and (event is None or e == event)]

    def clear(self):
        self.sent.clear()


def create_user(session_factory, name, email, role='user', password='secret123'):
    with session_scope(session_factory) as db_session:
        return UserRepository(db_session).save(TblUser(
            name=name,
            email=email,
            password_hash=generate_password_hash(password),
            role=role,
        ))


def identity_of(user):
    return Identity(user_id=user.id, name=user.name, email=user.email, role=Role(user.role))


@pytest.fixture
def session_factory():
    engine = build_engine('sqlite://')
    Base.metadata.create_all(bind=engine)
    yield build_session_factory(engine)
    engine.dispose()


@pytest.fixture
def emitter():
    return RecordingEmitter()


@pytest.fixture
def router(emitter):
    return RoomRouter(emitter)


@pytest.fixture
def supervision(session_factory, router):
    return AdminSupervisionView(session_factory, router)


@pytest.fixture
def manager(session_factory, router, supervision):
    return ChatSessionManager(session_factory, router, supervision, message_max_length=50)


@pytest.fixture
def alice(session_factory):
    return create_user(session_factory, 'Alice', 'alice@example.com')


@pytest.fixture
def bob(session_factory):
    return create_user(session_factory, 'Bob', 'bob@example.com')


@pytest.fixture
def admin(session_factory):
    return create_user(session_factory, 'Support', 'support@example.com', role='admin')


@pytest.fixture
def app_bundle():
    app, socketio = create_app(ChatTestConfig)
    yield app, socketio, app.extensions['storefront_chat']
    app.extensions['storefront_chat']['engine'].dispose()


@pytest.fixture
def client(app_bundle):
    app, _, _ = app_bundle
    return app.test_client()
