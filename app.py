#!/usr/bin/env python3
"""
Storefront Support Chat - Backend API
Flask REST API + SocketIO para el chat de soporte en vivo de la tienda
"""

import os
import sys
import logging
import functools
from datetime import datetime

from flask import Flask, request, jsonify, g
from flask_cors import CORS
from flask_socketio import SocketIO
from sqlalchemy import text
from sqlalchemy.exc import IntegrityError
from werkzeug.security import generate_password_hash, check_password_hash

# Importar componentes del proyecto
from config.settings import Config
from config.database import Base, build_engine, build_session_factory, session_scope
from storefront.errors import AuthenticationFailure, PersistenceFailure
from storefront.models.user import TblUser
from storefront.models.chat_session import TblChatSession  # noqa: F401 (registra la tabla)
from storefront.models.chat_message import TblChatMessage  # noqa: F401
from storefront.repositories.user_repository import UserRepository
from storefront.services.auth_gate import AuthenticationGate, bearer_token
from storefront.services.room_router import RoomRouter
from storefront.services.supervision import AdminSupervisionView
from storefront.services.chat_manager import ChatSessionManager
from storefront.sockets import register_chat_events

# Configurar logging
logging.basicConfig(
    level=getattr(logging, Config.LOG_LEVEL.upper(), logging.INFO),
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
)
logger = logging.getLogger(__name__)


def create_app(config_object=Config):
    """Crea la app Flask, el servidor SocketIO y los servicios del chat"""
    app = Flask(__name__)
    app.config.from_object(config_object)

    # Crear tablas si no existen
    engine = build_engine(app.config['DATABASE_URL'])
    Base.metadata.create_all(bind=engine)
    session_factory = build_session_factory(engine)
    logger.info("✅ Database tables verified/created")

    origins = app.config['CORS_ORIGINS']
    if origins != '*':
        origins = [origin.strip() for origin in origins.split(',') if origin.strip()]

    # Habilitar CORS para permitir requests desde frontend
    CORS(app, origins=origins)

    # Inicializar SocketIO
    socketio = SocketIO(app, cors_allowed_origins=origins, async_mode=app.config['SOCKETIO_ASYNC_MODE'])

    gate = AuthenticationGate(
        session_factory,
        secret=app.config['JWT_SECRET'],
        algorithm=app.config['JWT_ALGORITHM'],
        expiration_seconds=app.config['JWT_EXPIRATION_SECONDS']
    )
    router = RoomRouter(lambda event, payload, sid: socketio.emit(event, payload, to=sid))
    supervision = AdminSupervisionView(session_factory, router)
    manager = ChatSessionManager(
        session_factory, router, supervision,
        message_max_length=app.config['MESSAGE_MAX_LENGTH']
    )

    app.extensions['storefront_chat'] = {
        'engine': engine,
        'session_factory': session_factory,
        'gate': gate,
        'router': router,
        'supervision': supervision,
        'manager': manager,
    }

    register_routes(app, session_factory, gate, supervision)
    register_chat_events(socketio, gate, manager)
    return app, socketio


def register_routes(app, session_factory, gate, supervision):

    def require_auth(admin=False):
        """Valida el bearer token del request; admin=True exige rol admin"""
        def decorator(view):
            @functools.wraps(view)
            def wrapper(*args, **kwargs):
                try:
                    identity = gate.authenticate(bearer_token(request.headers.get('Authorization')))
                except AuthenticationFailure as e:
                    logger.info(f"Unauthorized request to {request.path}: {e}")
                    return jsonify({"error": "Authentication required"}), 401
                except PersistenceFailure as e:
                    logger.error(f"Error authenticating request: {e}")
                    return jsonify({"error": "Internal server error"}), 500
                if admin and not identity.is_admin:
                    return jsonify({"error": "Admin role required"}), 403
                g.identity = identity
                return view(*args, **kwargs)
            return wrapper
        return decorator

    # ============== API ENDPOINTS ==============

    @app.route('/api/health', methods=['GET'])
    def health_check():
        """Endpoint de salud del sistema"""
        try:
            with session_scope(session_factory) as db_session:
                db_session.execute(text("SELECT 1"))
            db_status = "OK"
        except PersistenceFailure as e:
            logger.error(f"Health check database error: {e}")
            db_status = "Error"

        return jsonify({
            "status": "running",
            "timestamp": datetime.now().isoformat(),
            "database": db_status,
            "version": "1.0.0"
        })

    @app.route('/api/auth/register', methods=['POST'])
    def register():
        """Registro de usuario; siempre con rol 'user'"""
        data = request.get_json(silent=True) or {}
        name = (data.get('name') or '').strip()
        email = (data.get('email') or '').strip().lower()
        password = data.get('password') or ''

        if not name or not email or not password:
            return jsonify({"error": "name, email and password are required"}), 400

        try:
            with session_scope(session_factory) as db_session:
                repo = UserRepository(db_session)
                if repo.find_by_email(email):
                    return jsonify({"error": "User already exists"}), 400

                try:
                    user = repo.save(TblUser(
                        name=name,
                        email=email,
                        password_hash=generate_password_hash(password),
                        role='user'
                    ))
                except IntegrityError:
                    # Otro registro con el mismo email gano la carrera
                    db_session.rollback()
                    return jsonify({"error": "User already exists"}), 400

                logger.info(f"User registered: {user.id}")
                return jsonify({"token": gate.issue_token(user), "user": user.to_dict()}), 201

        except PersistenceFailure as e:
            logger.error(f"Error registering user: {e}")
            return jsonify({"error": "Internal server error"}), 500

    @app.route('/api/auth/login', methods=['POST'])
    def login():
        """Login con email y password; devuelve un bearer token"""
        data = request.get_json(silent=True) or {}
        email = (data.get('email') or '').strip().lower()
        password = data.get('password') or ''

        try:
            with session_scope(session_factory) as db_session:
                user = UserRepository(db_session).find_by_email(email) if email else None
                if not user or not check_password_hash(user.password_hash, password):
                    return jsonify({"error": "Invalid credentials"}), 400

                return jsonify({"token": gate.issue_token(user), "user": user.to_dict()})

        except PersistenceFailure as e:
            logger.error(f"Error during login: {e}")
            return jsonify({"error": "Internal server error"}), 500

    @app.route('/api/auth/me', methods=['GET'])
    @require_auth()
    def current_user():
        identity = g.identity
        return jsonify({
            "id": identity.user_id,
            "name": identity.name,
            "email": identity.email,
            "role": identity.role.value
        })

    @app.route('/api/chats', methods=['GET'])
    @require_auth(admin=True)
    def list_chats():
        """Lista de sesiones de chat, la mas reciente primero"""
        try:
            chats = supervision.list_chats()
        except PersistenceFailure as e:
            logger.error(f"Error listing chats: {e}")
            return jsonify({"error": "Internal server error"}), 500

        return jsonify({"success": True, "total": len(chats), "chats": chats})

    @app.route('/api/chats/<chat_id>/messages', methods=['GET'])
    @require_auth(admin=True)
    def get_chat_messages(chat_id):
        """Historial de una sesion (solo lectura, sin suscripcion en vivo)"""
        try:
            messages = supervision.message_history(chat_id)
        except PersistenceFailure as e:
            logger.error(f"Error getting messages: {e}")
            return jsonify({"error": "Internal server error"}), 500

        if messages is None:
            return jsonify({"error": "Chat not found"}), 404

        return jsonify({"success": True, "chat_id": chat_id, "messages": messages})

    # ============== ERROR HANDLERS ==============

    @app.errorhandler(404)
    def not_found(error):
        return jsonify({"error": "Endpoint not found"}), 404

    @app.errorhandler(500)
    def internal_error(error):
        return jsonify({"error": "Internal server error"}), 500


# ============== MAIN ==============

if __name__ == '__main__':
    port = Config.APP_PORT

    print("🚀 Iniciando Storefront Support Chat - Backend API...")
    print(f"📡 API Base URL: http://localhost:{port}")
    print(f"🩺 Health check: http://localhost:{port}/api/health")
    print(f"💬 Chat socket: ws://localhost:{port}/socket.io")
    print("=" * 60)

    if not os.getenv('JWT_SECRET'):
        print("❌ ADVERTENCIA: JWT_SECRET no configurada, usando valor por defecto")

    if not os.getenv('DATABASE_URL'):
        print("❌ ADVERTENCIA: DATABASE_URL no configurada, usando SQLite local")

    app, socketio = create_app()

    # Iniciar servidor SocketIO
    try:
        socketio.run(
            app,
            debug=Config.FLASK_DEBUG,
            host='0.0.0.0',
            port=port,
            allow_unsafe_werkzeug=True  # Permitir Werkzeug en desarrollo
        )
    except KeyboardInterrupt:
        print("\n👋 Servidor API detenido por el usuario")
    except Exception as e:
        print(f"❌ Error iniciando servidor: {e}")
        sys.exit(1)
