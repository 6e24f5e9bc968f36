# storefront/services/auth_gate.py
import time
import logging
from dataclasses import dataclass
from enum import Enum
from typing import Optional

from joserfc import jwt
from joserfc.errors import JoseError
from joserfc.jwk import OctKey

from config.database import session_scope
from storefront.errors import AuthenticationFailure
from storefront.repositories.user_repository import UserRepository

logger = logging.getLogger(__name__)


class Role(str, Enum):
    USER = 'user'
    ADMIN = 'admin'


@dataclass(frozen=True)
class Identity:
    """Sujeto autenticado de una conexion, refrescado desde la BD"""
    user_id: str
    name: str
    email: str
    role: Role

    @property
    def is_admin(self) -> bool:
        return self.role is Role.ADMIN


def bearer_token(header_value: Optional[str]) -> Optional[str]:
    """Extrae el token de un header 'Authorization: Bearer ...'"""
    if not header_value:
        return None
    scheme, _, token = header_value.partition(' ')
    if scheme.lower() != 'bearer' or not token.strip():
        return None
    return token.strip()


class AuthenticationGate:
    """Emite y valida los tokens JWT que usan REST y el canal de sockets"""

    def __init__(self, session_factory, secret: str, algorithm: str = 'HS256',
                 expiration_seconds: int = 3600):
        self.session_factory = session_factory
        self.secret = secret
        self.algorithm = algorithm
        self.expiration_seconds = expiration_seconds
        self._key = OctKey.import_key(secret)

    def issue_token(self, user) -> str:
        now = int(time.time())
        payload = {
            'sub': user.id,
            'role': user.role,
            'name': user.name,
            'email': user.email,
            'iat': now,
            'exp': now + self.expiration_seconds,
        }
        return jwt.encode({'alg': self.algorithm}, payload, self._key, algorithms=[self.algorithm])

    def decode(self, token: Optional[str]) -> dict:
        """Verifica firma y expiracion; devuelve los claims"""
        if not token:
            raise AuthenticationFailure('Missing credential')
        try:
            claims = jwt.decode(token, self._key, algorithms=[self.algorithm]).claims
            jwt.JWTClaimsRegistry(
                leeway=0,
                sub={'essential': True},
                exp={'essential': True},
            ).validate(claims)
        except (JoseError, ValueError) as e:
            raise AuthenticationFailure(f'Invalid credential: {e}') from e
        return dict(claims)

    def authenticate(self, token: Optional[str]) -> Identity:
        """Valida el token y vuelve a leer nombre, email y rol desde la BD"""
        claims = self.decode(token)

        with session_scope(self.session_factory) as db_session:
            user = UserRepository(db_session).find_by_id(claims['sub'])
            if not user:
                raise AuthenticationFailure('User not found')
            try:
                role = Role(user.role)
            except ValueError:
                raise AuthenticationFailure(f'Unknown role: {user.role}')
            identity = Identity(user_id=user.id, name=user.name, email=user.email, role=role)

        if claims.get('role') != identity.role.value:
            logger.info(f"Role for user {identity.user_id} changed since token issue: "
                        f"{claims.get('role')} -> {identity.role.value}")
        return identity
