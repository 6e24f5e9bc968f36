# storefront/services/room_router.py
import logging
import threading
from collections import defaultdict
from typing import Any, Callable, Dict, Set

logger = logging.getLogger(__name__)

ADMIN_ROOM = 'admins'

# emitter(event, payload, sid)
Emitter = Callable[[str, Any, str], None]


class RoomRouter:
    """
    Tabla en memoria sala -> conexiones (sids).

    Es cache volatil de "quien quiere eventos en vivo"; se reconstruye al
    reiniciar el proceso. Los envios son best-effort, sin confirmacion.
    """

    def __init__(self, emitter: Emitter):
        self._emitter = emitter
        self._lock = threading.Lock()
        self._rooms: Dict[str, Set[str]] = defaultdict(set)
        self._memberships: Dict[str, Set[str]] = defaultdict(set)
        self._open: Set[str] = set()

    def open(self, sid: str) -> None:
        """Registra una conexion viva; solo las abiertas pueden unirse a salas"""
        with self._lock:
            self._open.add(sid)

    def is_open(self, sid: str) -> bool:
        with self._lock:
            return sid in self._open

    def join(self, sid: str, room: str) -> bool:
        """Agrega la conexion a la sala; False si ya era miembro o ya se fue"""
        with self._lock:
            if sid not in self._open:
                return False
            if sid in self._rooms[room]:
                return False
            self._rooms[room].add(sid)
            self._memberships[sid].add(room)
            return True

    def leave_all(self, sid: str) -> Set[str]:
        """Saca la conexion de todas sus salas (desconexion)"""
        with self._lock:
            self._open.discard(sid)
            rooms = self._memberships.pop(sid, set())
            for room in rooms:
                members = self._rooms.get(room)
                if members is None:
                    continue
                members.discard(sid)
                if not members:
                    del self._rooms[room]
            return rooms

    def members(self, room: str) -> Set[str]:
        with self._lock:
            return set(self._rooms.get(room, ()))

    def rooms_of(self, sid: str) -> Set[str]:
        with self._lock:
            return set(self._memberships.get(sid, ()))

    def send(self, sid: str, event: str, payload: Any) -> bool:
        """Envia un evento a una sola conexion"""
        try:
            self._emitter(event, payload, sid)
            return True
        except Exception as e:
            logger.warning(f"Failed to deliver '{event}' to {sid}: {e}")
            return False

    def broadcast(self, room: str, event: str, payload: Any) -> int:
        """Entrega el evento a cada miembro actual; un fallo no corta al resto"""
        delivered = 0
        for sid in self.members(room):
            if self.send(sid, event, payload):
                delivered += 1
        return delivered
