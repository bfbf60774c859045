# lunaexecutor/relay.py
"""
Live support chat relay: parse a frame, persist it, send the stored row to every open connection.

The sender is the user logged in when the socket opened; logging out over HTTP
closes that user's sockets. Dropped frames are only logged, there is no ack.
"""
import json
import logging
import threading
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Optional
from pydantic import ValidationError
from .errors import StorageError
from .schemas import ChatFrame

logger = logging.getLogger(__name__)

CHAT_NAMESPACE = '/ws'


@dataclass(frozen=True)
class Principal:
    """Who is speaking on a connection. ``user_id`` is None for anonymous senders."""
    user_id: Optional[int]
    username: Optional[str]

    @classmethod
    def from_user(cls, user):
        return cls(user_id=user.id, username=user.username)

    @classmethod
    def anonymous(cls):
        return cls(user_id=None, username=None)


class ConnectionManager:
    """Open chat connections, keyed by Socket.IO session id."""

    def __init__(self):
        self._connections = {}
        self._lock = threading.Lock()

    def add(self, sid, principal):
        with self._lock:
            self._connections[sid] = principal
        logger.info("Chat connection %s opened (user=%s, open=%d)", sid, principal.user_id, len(self))

    def remove(self, sid):
        with self._lock:
            principal = self._connections.pop(sid, None)
        if principal is not None:
            logger.info("Chat connection %s closed (open=%d)", sid, len(self))
        return principal

    def get(self, sid):
        with self._lock:
            return self._connections.get(sid)

    def sids(self):
        with self._lock:
            return list(self._connections)

    def sids_for(self, user_id):
        with self._lock:
            return [sid for sid, principal in self._connections.items()
                    if principal.user_id is not None and principal.user_id == user_id]

    def __contains__(self, sid):
        with self._lock:
            return sid in self._connections

    def __len__(self):
        with self._lock:
            return len(self._connections)


class ChatRelay:
    def __init__(self, socketio, repository, connections=None, namespace=CHAT_NAMESPACE,
                 max_length=2000):
        self.socketio = socketio
        self.repository = repository
        self.connections = connections if connections is not None else ConnectionManager()
        self.namespace = namespace
        self.max_length = max_length

    def connect(self, sid, principal):
        self.connections.add(sid, principal)

    def disconnect(self, sid):
        self.connections.remove(sid)

    def disconnect_user(self, user_id):
        """Close every socket bound to ``user_id``."""
        for sid in self.connections.sids_for(user_id):
            self.connections.remove(sid)
            try:
                self.socketio.server.disconnect(sid, namespace=self.namespace)
            except Exception as e:
                logger.warning("Could not close chat connection %s: %s", sid, e)

    def parse(self, raw):
        """Decode a raw frame; None (logged) when it is unusable."""
        try:
            if isinstance(raw, (bytes, bytearray)):
                raw = raw.decode('utf-8')
            if isinstance(raw, str):
                frame = ChatFrame.model_validate_json(raw)
            else:
                frame = ChatFrame.model_validate(raw)
        except (ValidationError, UnicodeDecodeError) as e:
            logger.warning("Dropping malformed chat frame: %s", e)
            return None

        content = frame.content.strip()
        if not content:
            logger.warning("Dropping empty chat frame")
            return None
        if len(content) > self.max_length:
            logger.warning("Dropping chat frame of %d chars (max %d)", len(content), self.max_length)
            return None
        return frame.model_copy(update={'content': content})

    def _author_is_admin(self, sid, principal):
        """Admin flag of the sender as stored right now; None when the author is gone."""
        if principal.user_id is None:
            return False
        author = self.repository.get_user(principal.user_id)
        if author is None:
            logger.warning("Connection %s is bound to missing user %s", sid, principal.user_id)
            return None
        return bool(author.is_admin)

    def receive(self, sid, raw):
        """Handle one frame from ``sid``. Returns the stored message, or None when dropped."""
        principal = self.connections.get(sid)
        if principal is None:
            logger.warning("Frame from unregistered connection %s ignored", sid)
            return None

        frame = self.parse(raw)
        if frame is None:
            return None

        if frame.user_id is not None and frame.user_id != principal.user_id:
            logger.warning(
                "Connection %s claimed userId=%s but is bound to user %s; using the session identity",
                sid, frame.user_id, principal.user_id,
            )

        try:
            is_admin = self._author_is_admin(sid, principal)
            if is_admin is None:
                return None
            if frame.is_admin and not is_admin:
                logger.warning("Connection %s claimed admin rights it does not have", sid)
            message = self.repository.save_chat_message(
                user_id=principal.user_id,
                content=frame.content,
                timestamp=datetime.now(timezone.utc),
                is_admin=is_admin,
            )
        except StorageError as e:
            logger.error("Chat message from %s dropped, could not persist: %s", sid, e)
            return None

        self.broadcast(message.to_dict())
        return message

    def broadcast(self, payload):
        """Send ``payload`` as a JSON text frame to every open connection."""
        frame = json.dumps(payload)
        for sid in self.connections.sids():
            try:
                self.socketio.send(frame, to=sid, namespace=self.namespace)
            except Exception as e:
                # a failed send prunes only that connection
                logger.warning("Send to %s failed, dropping connection: %s", sid, e)
                self.connections.remove(sid)
