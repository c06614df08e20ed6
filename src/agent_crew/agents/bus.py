"""Message bus collaborator that receives crew notifications."""

from __future__ import annotations

import itertools
import threading
from abc import ABC, abstractmethod
from dataclasses import dataclass
from datetime import datetime

from agent_crew.memory.models import MemoryRole
from agent_crew.storage.common import utc_now

BROADCAST = "all"


@dataclass(frozen=True, slots=True)
class BusMessage:
    message_id: int
    sender: str
    recipient: str
    role: MemoryRole
    content: str
    created_at: datetime


class MessageBus(ABC):
    """Receiver for notifications emitted by the core."""

    @abstractmethod
    def publish(
        self,
        sender: str,
        recipient: str,
        content: str,
        *,
        role: MemoryRole = MemoryRole.SYSTEM,
    ) -> BusMessage: ...


class Scratchpad(MessageBus):
    """In-process message bus shared by the crew."""

    def __init__(self) -> None:
        self._messages: list[BusMessage] = []
        self._ids = itertools.count(1)
        self._lock = threading.RLock()

    def publish(
        self,
        sender: str,
        recipient: str,
        content: str,
        *,
        role: MemoryRole = MemoryRole.SYSTEM,
    ) -> BusMessage:
        with self._lock:
            message = BusMessage(
                message_id=next(self._ids),
                sender=sender,
                recipient=recipient,
                role=role,
                content=content,
                created_at=utc_now(),
            )
            self._messages.append(message)
            return message

    def get_messages(
        self,
        *,
        sender: str | None = None,
        recipient: str | None = None,
        role: MemoryRole | None = None,
    ) -> list[BusMessage]:
        """Messages in publish order, optionally filtered."""

        with self._lock:
            return [
                message
                for message in self._messages
                if (sender is None or message.sender == sender)
                and (recipient is None or message.recipient == recipient)
                and (role is None or message.role == role)
            ]
