"""
In-process registry of live real-time connections.

A user may hold several connections at once (tabs, devices). The map is the
only shared mutable state of the chat path; it is guarded by a plain lock so
register/unregister/send stay consistent whether they are called from the
event loop or from threadpool workers. Pushes happen outside the lock on a
snapshot of the user's connections.

State is process-local and rebuilt as clients reconnect. Running several
worker processes needs a broker-backed registry instead.
"""
from __future__ import annotations

import logging
import threading
from typing import Any, Dict, List

log = logging.getLogger("chat.registry")


class ConnectionRegistry:
    def __init__(self):
        self._connections: Dict[int, List[Any]] = {}
        self._lock = threading.Lock()

    def register(self, user_id: int, connection: Any) -> bool:
        """Add a connection. Returns True if the user just came online."""
        with self._lock:
            conns = self._connections.setdefault(user_id, [])
            came_online = not conns
            if not any(c is connection for c in conns):
                conns.append(connection)
            total = len(conns)
        log.info("Connection registered", extra={"user_id": user_id, "connections": total})
        return came_online

    def unregister(self, user_id: int, connection: Any) -> bool:
        """Remove one connection. Returns True if that was the user's last one."""
        with self._lock:
            conns = self._connections.get(user_id)
            if not conns:
                return False
            remaining = [c for c in conns if c is not connection]
            if len(remaining) == len(conns):
                return False
            if remaining:
                self._connections[user_id] = remaining
                went_offline = False
            else:
                del self._connections[user_id]
                went_offline = True
        log.info(
            "Connection unregistered",
            extra={"user_id": user_id, "connections": len(remaining)},
        )
        return went_offline

    def is_online(self, user_id: int) -> bool:
        with self._lock:
            return bool(self._connections.get(user_id))

    def connection_count(self, user_id: int) -> int:
        with self._lock:
            return len(self._connections.get(user_id, ()))

    def online_users(self) -> List[int]:
        with self._lock:
            return [uid for uid, conns in self._connections.items() if conns]

    async def send(self, user_id: int, payload: Dict[str, Any]) -> bool:
        """
        Push `payload` to every live connection of `user_id`.

        Returns False when the user has no connection (caller falls back to
        polling). A connection whose push raises is logged and dropped; the
        result is True as long as at least one push went through.
        """
        with self._lock:
            targets = list(self._connections.get(user_id, ()))
        if not targets:
            return False

        delivered = 0
        for conn in targets:
            try:
                await conn.send_json(payload)
                delivered += 1
            except Exception as exc:
                log.warning(
                    "Push failed, dropping connection: %s",
                    exc,
                    extra={"user_id": user_id, "event": payload.get("type")},
                )
                self.unregister(user_id, conn)
        return delivered > 0


__all__ = ["ConnectionRegistry"]
