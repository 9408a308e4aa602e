"""
Event System Module

Observer-pattern dispatcher for the vault's observable event stream.
The ledger publishes Deposit and Withdrawal notifications here after its
state changes are applied; monitors subscribe without touching the ledger.
"""

from enum import Enum
from typing import Any, Callable, Dict, Hashable, List, Optional
from dataclasses import dataclass, field
from datetime import datetime, timezone
import uuid
import logging


class VaultEvent(Enum):
    """Events emitted by the vault ledger"""
    DEPOSIT = "vault.deposit"
    WITHDRAWAL = "vault.withdrawal"
    TRANSFER_FAILED = "vault.transfer_failed"


@dataclass
class EventPayload:
    """Payload for vault events"""
    event_type: VaultEvent
    owner: Hashable
    amount: int
    index: int  # Counter value after the operation
    timestamp: datetime = field(default_factory=lambda: datetime.now(timezone.utc))
    event_id: str = field(default_factory=lambda: str(uuid.uuid4()))

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for serialization"""
        return {
            'event_type': self.event_type.value,
            'owner': self.owner,
            'amount': self.amount,
            'index': self.index,
            'timestamp': self.timestamp.isoformat(),
            'event_id': self.event_id
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'EventPayload':
        """Create from dictionary"""
        timestamp = data['timestamp']
        if isinstance(timestamp, str):
            timestamp = datetime.fromisoformat(timestamp)
        return cls(
            event_type=VaultEvent(data['event_type']),
            owner=data['owner'],
            amount=int(data['amount']),
            index=int(data['index']),
            timestamp=timestamp,
            event_id=data['event_id']
        )


def _handler_name(handler: Callable) -> str:
    return getattr(handler, "__name__", repr(handler))


class EventDispatcher:
    """
    Central event dispatcher, publish/subscribe.

    Handlers run synchronously in subscription order. A failing handler is
    logged and skipped; it never aborts the ledger operation that published.
    """

    def __init__(self):
        self._handlers: Dict[VaultEvent, List[Callable]] = {}
        self._global_handlers: List[Callable] = []  # catch-all handlers
        self.logger = logging.getLogger("vault.events")

    def subscribe(self, event_type: VaultEvent, handler: Callable) -> None:
        """Subscribe to a specific event type"""
        self._handlers.setdefault(event_type, []).append(handler)
        self.logger.debug(f"Subscribed handler {_handler_name(handler)} to {event_type.value}")

    def subscribe_all(self, handler: Callable) -> None:
        """Subscribe to ALL events"""
        self._global_handlers.append(handler)
        self.logger.debug(f"Subscribed global handler {_handler_name(handler)}")

    def unsubscribe(self, event_type: VaultEvent, handler: Callable) -> None:
        """Unsubscribe from a specific event type"""
        try:
            self._handlers.get(event_type, []).remove(handler)
            self.logger.debug(f"Unsubscribed handler {_handler_name(handler)} from {event_type.value}")
        except ValueError:
            self.logger.warning(f"Handler {_handler_name(handler)} was not subscribed to {event_type.value}")

    def unsubscribe_all(self, handler: Callable) -> None:
        """Unsubscribe a catch-all handler"""
        try:
            self._global_handlers.remove(handler)
            self.logger.debug(f"Unsubscribed global handler {_handler_name(handler)}")
        except ValueError:
            self.logger.warning(f"Global handler {_handler_name(handler)} was not subscribed")

    def publish(self, event: EventPayload) -> None:
        """Publish event to all subscribers"""
        self.logger.debug(f"Publishing {event.event_type.value} #{event.index} for {event.owner}")

        # Copy so a handler may (un)subscribe while being notified
        for handler in list(self._handlers.get(event.event_type, [])):
            try:
                handler(event)
            except Exception as e:
                self.logger.error(f"Error in event handler {_handler_name(handler)} for {event.event_type.value}: {e}")

        for handler in list(self._global_handlers):
            try:
                handler(event)
            except Exception as e:
                self.logger.error(f"Error in global event handler {_handler_name(handler)} for {event.event_type.value}: {e}")

    def clear(self) -> None:
        """Clear all handlers"""
        self._handlers.clear()
        self._global_handlers.clear()
        self.logger.info("All event handlers cleared")

    def get_handler_count(self, event_type: Optional[VaultEvent] = None) -> int:
        """Get count of handlers for a specific event type or all"""
        if event_type:
            return len(self._handlers.get(event_type, []))
        total = sum(len(handlers) for handlers in self._handlers.values())
        return total + len(self._global_handlers)
