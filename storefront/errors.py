# storefront/errors.py


class ChatError(Exception):
    """Base para los errores del chat de soporte"""


class AuthenticationFailure(ChatError):
    """Credencial ausente, invalida o expirada, o el usuario ya no existe"""


class AuthorizationViolation(ChatError):
    """Un usuario intento escribir en una sesion que no es suya"""


class RoleViolation(ChatError):
    """Un usuario sin rol admin invoco una operacion de supervision"""


class PersistenceFailure(ChatError):
    """Fallo una operacion de almacenamiento"""


class InvalidPayload(ChatError):
    """El evento recibido no tiene la forma esperada"""
