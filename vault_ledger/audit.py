"""
Audit Trail Module

Hash-chained, append-only log of vault activity with SHA-256 for tamper
detection. The trail listens on the event dispatcher, so every Deposit,
Withdrawal and failed payout the ledger publishes is recorded in order.
"""

import hashlib
import json
import logging
import uuid
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, Hashable, List, Optional

from .events import EventDispatcher, EventPayload, VaultEvent


class AuditEventType(Enum):
    """Types of audit events"""
    DEPOSIT = "deposit"
    WITHDRAWAL = "withdrawal"
    TRANSFER_FAILED = "transfer_failed"


_EVENT_TYPES = {
    VaultEvent.DEPOSIT: AuditEventType.DEPOSIT,
    VaultEvent.WITHDRAWAL: AuditEventType.WITHDRAWAL,
    VaultEvent.TRANSFER_FAILED: AuditEventType.TRANSFER_FAILED,
}


@dataclass
class AuditRecord:
    """
    Immutable audit record with hash chaining for tamper detection
    """
    id: str
    created_at: datetime
    event_type: AuditEventType
    owner: str
    amount: int
    index: int
    previous_hash: str  # Hash of previous record for chaining
    current_hash: str   # SHA-256 hash of this record
    source_event_id: Optional[str] = None
    metadata: Dict[str, Any] = field(default_factory=dict)

    def calculate_hash(self) -> str:
        """
        Calculate SHA-256 hash of this record
        Hash includes all fields except current_hash to prevent circular reference
        """
        hash_data = {
            'id': self.id,
            'created_at': self.created_at.isoformat(),
            'event_type': self.event_type.value,
            'owner': self.owner,
            'amount': self.amount,
            'index': self.index,
            'previous_hash': self.previous_hash,
            'source_event_id': self.source_event_id,
            'metadata': self.metadata
        }

        # Create deterministic JSON string
        json_data = json.dumps(hash_data, sort_keys=True, separators=(',', ':'), default=str)
        return hashlib.sha256(json_data.encode('utf-8')).hexdigest()

    def verify_hash(self) -> bool:
        """Verify that the current hash is correct"""
        return self.current_hash == self.calculate_hash()

    def to_dict(self) -> Dict[str, Any]:
        return {
            'id': self.id,
            'created_at': self.created_at.isoformat(),
            'event_type': self.event_type.value,
            'owner': self.owner,
            'amount': self.amount,
            'index': self.index,
            'previous_hash': self.previous_hash,
            'current_hash': self.current_hash,
            'source_event_id': self.source_event_id,
            'metadata': self.metadata
        }


class AuditTrail:
    """
    Hash-chained audit trail for tamper detection
    """

    def __init__(self):
        self._records: List[AuditRecord] = []
        self._last_hash: Optional[str] = None
        self.logger = logging.getLogger("vault.audit")

    def attach(self, dispatcher: EventDispatcher) -> None:
        """Record every event published on ``dispatcher``"""
        dispatcher.subscribe_all(self.record_event)

    def detach(self, dispatcher: EventDispatcher) -> None:
        dispatcher.unsubscribe_all(self.record_event)

    def record_event(self, event: EventPayload) -> AuditRecord:
        """Append a ledger event to the chain"""
        return self.log_event(
            event_type=_EVENT_TYPES[event.event_type],
            owner=event.owner,
            amount=event.amount,
            index=event.index,
            source_event_id=event.event_id
        )

    def log_event(
        self,
        event_type: AuditEventType,
        owner: Hashable,
        amount: int,
        index: int,
        source_event_id: Optional[str] = None,
        metadata: Optional[Dict[str, Any]] = None
    ) -> AuditRecord:
        """
        Log an audit event with hash chaining

        Args:
            event_type: Type of audit event
            owner: Vault owner concerned
            amount: Amount moved (or attempted)
            index: Ledger counter value carried by the event
            source_event_id: ID of the dispatcher event, if any
            metadata: Additional event-specific data

        Returns:
            Created AuditRecord
        """
        record = AuditRecord(
            id=str(uuid.uuid4()),
            created_at=datetime.now(timezone.utc),
            event_type=event_type,
            owner=str(owner),
            amount=amount,
            index=index,
            previous_hash=self._last_hash or "",
            current_hash="",  # Will be calculated below
            source_event_id=source_event_id,
            metadata=metadata or {}
        )
        record.current_hash = record.calculate_hash()

        self._records.append(record)
        self._last_hash = record.current_hash
        self.logger.debug(f"Audit {event_type.value} #{index} for {owner} -> {record.current_hash[:12]}")
        return record

    def get_events_for_owner(self, owner: Hashable, limit: Optional[int] = None) -> List[AuditRecord]:
        """
        Get audit records for a vault owner

        Args:
            owner: Vault owner
            limit: Return only the most recent N records

        Returns:
            List of AuditRecord objects in chain order
        """
        records = [r for r in self._records if r.owner == str(owner)]
        if limit:
            records = records[-limit:]
        return records

    def get_events_by_type(self, event_type: AuditEventType) -> List[AuditRecord]:
        return [r for r in self._records if r.event_type == event_type]

    def get_all_events(self, limit: Optional[int] = None) -> List[AuditRecord]:
        """Get all audit records in chain order"""
        records = list(self._records)
        if limit:
            records = records[-limit:]
        return records

    def verify_integrity(self) -> Dict[str, Any]:
        """
        Verify the integrity of the entire audit chain

        Returns:
            Dictionary with integrity check results
        """
        result = {
            'valid': True,
            'total_events': len(self._records),
            'hash_errors': [],
            'chain_breaks': []
        }

        previous_hash = ""
        for i, record in enumerate(self._records):
            if not record.verify_hash():
                result['valid'] = False
                result['hash_errors'].append({
                    'event_id': record.id,
                    'position': i,
                    'expected_hash': record.calculate_hash(),
                    'actual_hash': record.current_hash
                })

            if record.previous_hash != previous_hash:
                result['valid'] = False
                result['chain_breaks'].append({
                    'event_id': record.id,
                    'position': i,
                    'expected_previous_hash': previous_hash,
                    'actual_previous_hash': record.previous_hash
                })
            previous_hash = record.current_hash

        if not result['valid']:
            self.logger.error(
                f"Audit chain integrity check failed: {len(result['hash_errors'])} hash errors, "
                f"{len(result['chain_breaks'])} chain breaks"
            )

        return result

    def count_events(self) -> int:
        """Get total number of audit records"""
        return len(self._records)

    def get_latest_hash(self) -> Optional[str]:
        """Get the hash of the most recent audit record"""
        return self._last_hash
