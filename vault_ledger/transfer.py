"""
Value Transfer Module

The ledger's only external collaborator: something that moves the native
asset to an address and reports success or failure. Includes an in-memory
implementation for tests and embedding, and a REST client for a payout
service.
"""

import httpx
import logging
import uuid
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Callable, Dict, Hashable, List, Optional

logger = logging.getLogger("vault.transfer")


class ValueTransfer(ABC):
    """Moves value out of the vault"""

    @abstractmethod
    def transfer_value(self, to: Hashable, amount: int) -> bool:
        """
        Move ``amount`` to ``to``.

        Returns:
            True if the value was delivered, False otherwise
        """
        pass


@dataclass(frozen=True)
class TransferRecord:
    """A payout delivered by InMemoryValueTransfer"""
    to: Hashable
    amount: int


class InMemoryValueTransfer(ValueTransfer):
    """In-memory transfer implementation for testing and embedding"""

    def __init__(self, on_transfer: Optional[Callable[[Hashable, int], None]] = None):
        self.on_transfer = on_transfer
        self.fail_always = False
        self.transfers: List[TransferRecord] = []
        self.attempts = 0
        self._failures_pending = 0

    def fail_next(self, times: int = 1) -> None:
        """Make the next ``times`` transfers report failure"""
        self._failures_pending += times

    def transfer_value(self, to: Hashable, amount: int) -> bool:
        self.attempts += 1

        # Hook runs while the withdrawal is still in flight
        if self.on_transfer is not None:
            self.on_transfer(to, amount)

        if self.fail_always:
            return False
        if self._failures_pending:
            self._failures_pending -= 1
            return False

        self.transfers.append(TransferRecord(to=to, amount=amount))
        return True

    def sent_to(self, to: Hashable) -> int:
        """Total value delivered to a recipient"""
        return sum(record.amount for record in self.transfers if record.to == to)

    @property
    def total_sent(self) -> int:
        return sum(record.amount for record in self.transfers)


class HttpValueTransfer(ValueTransfer):
    """
    REST client for an external payout service.

    Fails closed: anything other than an explicit success from the service
    is reported as a failed transfer so the ledger rolls the withdrawal back.
    """

    def __init__(
        self,
        base_url: str,
        timeout: float = 2.0,
        api_key: Optional[str] = None
    ):
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self.api_key = api_key
        self._client = httpx.Client(timeout=timeout)

    def _headers(self) -> Dict[str, str]:
        headers = {}
        if self.api_key:
            headers["Authorization"] = f"Bearer {self.api_key}"
        return headers

    def transfer_value(self, to: Hashable, amount: int) -> bool:
        """
        Request a payout from the service

        Args:
            to: Recipient identity
            amount: Amount in the native unit

        Returns:
            True only if the service answered 2xx with ``{"status": "ok"}``
        """
        request = {
            "to": str(to),
            "amount": amount,
            "idempotency_key": str(uuid.uuid4())
        }

        try:
            response = self._client.post(
                f"{self.base_url}/transfers",
                json=request,
                headers=self._headers()
            )
        except httpx.HTTPError as e:
            logger.error(f"Payout service unreachable for transfer to {to}: {e}")
            return False

        if not 200 <= response.status_code < 300:
            logger.warning(f"Payout service returned {response.status_code}: {response.text}")
            return False

        try:
            data = response.json()
        except ValueError:
            logger.warning(f"Payout service returned a non-JSON body: {response.text}")
            return False

        if not isinstance(data, dict) or data.get("status") != "ok":
            logger.warning(f"Payout service rejected transfer to {to}: {data}")
            return False

        return True

    def health_check(self) -> bool:
        """Check if the payout service is healthy"""
        try:
            r = self._client.get(f"{self.base_url}/health")
            return r.status_code == 200
        except httpx.HTTPError:
            return False

    def close(self):
        """Close the HTTP client"""
        self._client.close()
