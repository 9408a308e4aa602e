"""
Vault Ledger Engine

Single-asset custodial ledger. Holds per-owner balances under a global
intake cap, releases funds under a per-withdrawal limit, and never lets a
failed payout leave the books changed.

Withdrawals follow checks-effects-interactions ordering: every check runs
first, the balance/total/counter are debited next, and only then is the
value transfer collaborator invoked. A reentrant call made from inside the
transfer therefore sees the debited balance.

Every withdrawal runs inside a journal. Calls re-entered from the payout
belong to the outer withdrawal: their prior values are journaled and their
events are held back until the outermost call commits. If a payout fails,
the journal restores the exact state seen before that withdrawal, so
nothing committed inside it survives and no held-back index is ever
published.
"""

from contextlib import contextmanager
from dataclasses import dataclass, field
from typing import Any, Dict, Hashable, Iterator, List, Optional
import logging

from .errors import (
    CapExceeded, ExceedsWithdrawLimit, InsufficientBalance, InvalidAmount,
    InvalidConfiguration, LedgerInvariantError, TransferFailed, ZeroAmount
)
from .events import EventDispatcher, EventPayload, VaultEvent
from .logging_config import get_logger, log_action
from .transfer import ValueTransfer


@dataclass(frozen=True)
class LedgerReceipt:
    """Outcome of a successful deposit or withdrawal"""
    owner: Hashable
    amount: int
    balance: int          # Owner's balance after the operation
    total_deposited: int  # Ledger total after the operation
    index: int            # deposit_count or withdrawal_count after the operation

    def to_dict(self) -> Dict[str, Any]:
        return {
            "owner": self.owner,
            "amount": self.amount,
            "balance": self.balance,
            "total_deposited": self.total_deposited,
            "index": self.index
        }


@dataclass(frozen=True)
class LedgerSnapshot:
    """Point-in-time copy of the ledger state"""
    withdraw_limit: int
    bank_cap: int
    total_deposited: int
    deposit_count: int
    withdrawal_count: int
    balances: Dict[Hashable, int] = field(default_factory=dict)

    @property
    def available(self) -> int:
        """Headroom left under the bank cap"""
        return self.bank_cap - self.total_deposited


_UNSEEN = object()


class _Journal:
    """Prior values of everything written while a withdrawal is in flight"""

    def __init__(self, ledger: 'VaultLedger'):
        self.total_deposited = ledger._total_deposited
        self.deposit_count = ledger._deposit_count
        self.withdrawal_count = ledger._withdrawal_count
        self.balances: Dict[Hashable, Any] = {}
        self.events: List[EventPayload] = []

    def remember(self, owner: Hashable, balances: Dict[Hashable, int]) -> None:
        # First write wins: that is the value to restore
        if owner not in self.balances:
            self.balances[owner] = balances.get(owner, _UNSEEN)

    def absorb(self, child: '_Journal') -> None:
        """Fold a committed nested journal into this one"""
        for owner, prior in child.balances.items():
            self.balances.setdefault(owner, prior)
        self.events.extend(child.events)

    def restore(self, ledger: 'VaultLedger') -> None:
        for owner, prior in self.balances.items():
            if prior is _UNSEEN:
                ledger._balances.pop(owner, None)
            else:
                ledger._balances[owner] = prior
        ledger._total_deposited = self.total_deposited
        ledger._deposit_count = self.deposit_count
        ledger._withdrawal_count = self.withdrawal_count


def _validate_limit(name: str, value: Any) -> int:
    if isinstance(value, bool) or not isinstance(value, int) or value <= 0:
        raise InvalidConfiguration(name, value)
    return value


def _validate_amount(amount: Any) -> int:
    if isinstance(amount, bool) or not isinstance(amount, int) or amount < 0:
        raise InvalidAmount(amount)
    if amount == 0:
        raise ZeroAmount()
    return amount


class VaultLedger:
    """
    Per-owner vault balances with an intake cap and a withdrawal limit.

    The ledger is an ordinary object: whoever embeds it constructs it,
    holds the reference and passes the owner identity into every call.
    It does not authenticate owners.
    """

    def __init__(
        self,
        withdraw_limit: int,
        bank_cap: int,
        transfer: ValueTransfer,
        dispatcher: Optional[EventDispatcher] = None,
        logger: Optional[logging.Logger] = None
    ):
        """
        Create an empty ledger

        Args:
            withdraw_limit: Ceiling on a single withdrawal, must be > 0
            bank_cap: Ceiling on the sum of all balances, must be > 0
            transfer: Collaborator that pays out withdrawals
            dispatcher: Receives Deposit/Withdrawal notifications
            logger: Defaults to the ``vault.ledger`` logger

        Raises:
            InvalidConfiguration: If either limit is not a positive integer
        """
        self._withdraw_limit = _validate_limit("withdraw_limit", withdraw_limit)
        self._bank_cap = _validate_limit("bank_cap", bank_cap)
        self.transfer = transfer
        self.dispatcher = dispatcher or EventDispatcher()
        self.logger = logger or get_logger("vault.ledger")

        self._balances: Dict[Hashable, int] = {}
        self._total_deposited = 0
        self._deposit_count = 0
        self._withdrawal_count = 0
        self._journals: List[_Journal] = []

    @classmethod
    def from_config(cls, config, transfer: ValueTransfer,
                    dispatcher: Optional[EventDispatcher] = None) -> 'VaultLedger':
        """Build a ledger from a VaultConfig"""
        return cls(
            withdraw_limit=config.withdraw_limit,
            bank_cap=config.bank_cap,
            transfer=transfer,
            dispatcher=dispatcher
        )

    @property
    def withdraw_limit(self) -> int:
        return self._withdraw_limit

    @property
    def bank_cap(self) -> int:
        return self._bank_cap

    @property
    def total_deposited(self) -> int:
        return self._total_deposited

    def deposit(self, owner: Hashable, amount: int) -> LedgerReceipt:
        """
        Credit ``amount`` to ``owner``'s vault

        The value is taken as already received with the call; no external
        transfer happens.

        Returns:
            LedgerReceipt with the owner's new balance and the deposit index

        Raises:
            InvalidAmount: If amount is negative or not an integer
            ZeroAmount: If amount is 0
            CapExceeded: If the deposit would take the total above the cap
        """
        try:
            _validate_amount(amount)

            attempted = self._total_deposited + amount
            if attempted > self._bank_cap:
                raise CapExceeded(
                    attempted=attempted,
                    available=self._bank_cap - self._total_deposited
                )
        except (InvalidAmount, ZeroAmount, CapExceeded) as e:
            self._log_rejection("deposit", owner, amount, e)
            raise

        self._set_balance(owner, self._balances.get(owner, 0) + amount)
        self._total_deposited += amount
        self._deposit_count += 1

        receipt = LedgerReceipt(
            owner=owner,
            amount=amount,
            balance=self._balances[owner],
            total_deposited=self._total_deposited,
            index=self._deposit_count
        )

        log_action(
            self.logger, "info", f"Deposit #{receipt.index} of {amount} accepted",
            owner=owner, action="deposit",
            extra={"amount": amount, "balance": receipt.balance,
                   "total_deposited": receipt.total_deposited}
        )
        self._publish(VaultEvent.DEPOSIT, owner, amount, receipt.index)
        return receipt

    def withdraw(self, owner: Hashable, amount: int) -> LedgerReceipt:
        """
        Debit ``amount`` from ``owner``'s vault and pay it out

        Returns:
            LedgerReceipt with the owner's new balance and the withdrawal index

        Raises:
            InvalidAmount: If amount is negative or not an integer
            ZeroAmount: If amount is 0
            ExceedsWithdrawLimit: If amount is above the per-withdrawal limit
            InsufficientBalance: If the owner's balance is below amount
            TransferFailed: If the payout failed; nothing was debited
        """
        try:
            _validate_amount(amount)

            # Limit first, so an oversized request is rejected even when funded
            if amount > self._withdraw_limit:
                raise ExceedsWithdrawLimit(requested=amount, limit=self._withdraw_limit)

            available = self._balances.get(owner, 0)
            if amount > available:
                raise InsufficientBalance(requested=amount, available=available)
        except (InvalidAmount, ZeroAmount, ExceedsWithdrawLimit, InsufficientBalance) as e:
            self._log_rejection("withdraw", owner, amount, e)
            raise

        try:
            with self._journaled():
                self._set_balance(owner, available - amount)
                self._total_deposited -= amount
                self._withdrawal_count += 1
                index = self._withdrawal_count

                self._pay_out(owner, amount)

                receipt = LedgerReceipt(
                    owner=owner,
                    amount=amount,
                    balance=self._balances[owner],
                    total_deposited=self._total_deposited,
                    index=index
                )
                self._publish(VaultEvent.WITHDRAWAL, owner, amount, index)
        except TransferFailed as e:
            self._log_rejection("withdraw", owner, amount, e)
            self.dispatcher.publish(EventPayload(
                event_type=VaultEvent.TRANSFER_FAILED,
                owner=owner,
                amount=amount,
                index=self._withdrawal_count
            ))
            raise

        log_action(
            self.logger, "info", f"Withdrawal #{index} of {amount} paid out",
            owner=owner, action="withdraw",
            extra={"amount": amount, "balance": receipt.balance,
                   "total_deposited": receipt.total_deposited}
        )
        return receipt

    def balance_of(self, owner: Hashable) -> int:
        """Balance held for ``owner`` (0 if never seen)"""
        return self._balances.get(owner, 0)

    def deposit_count(self) -> int:
        return self._deposit_count

    def withdrawal_count(self) -> int:
        return self._withdrawal_count

    def owners(self) -> List[Hashable]:
        """Owners ever credited, in first-deposit order"""
        return list(self._balances)

    def snapshot(self) -> LedgerSnapshot:
        """Copy of the current state"""
        return LedgerSnapshot(
            withdraw_limit=self._withdraw_limit,
            bank_cap=self._bank_cap,
            total_deposited=self._total_deposited,
            deposit_count=self._deposit_count,
            withdrawal_count=self._withdrawal_count,
            balances=dict(self._balances)
        )

    def check_invariants(self) -> None:
        """
        Verify the accounting invariants

        Raises:
            LedgerInvariantError: Listing every violated invariant
        """
        violations = []
        balance_sum = sum(self._balances.values())
        if self._total_deposited != balance_sum:
            violations.append(
                f"total_deposited {self._total_deposited} != sum of balances {balance_sum}"
            )
        if self._total_deposited > self._bank_cap:
            violations.append(
                f"total_deposited {self._total_deposited} > bank_cap {self._bank_cap}"
            )
        negative = [owner for owner, balance in self._balances.items() if balance < 0]
        if negative:
            violations.append(f"negative balances for {negative}")

        if violations:
            raise LedgerInvariantError(violations)

    @contextmanager
    def _journaled(self) -> Iterator[_Journal]:
        """
        Run a withdrawal's effects and payout as one unit

        On exception the state is restored to what it was on entry and the
        events held back inside the block are dropped. On success the events
        are published, or handed to the enclosing journal when this call was
        re-entered from another withdrawal's payout.
        """
        journal = _Journal(self)
        self._journals.append(journal)
        try:
            yield journal
        except BaseException:
            self._journals.pop()
            journal.restore(self)
            raise
        self._journals.pop()

        if self._journals:
            self._journals[-1].absorb(journal)
        else:
            for event in journal.events:
                self.dispatcher.publish(event)

    def _set_balance(self, owner: Hashable, balance: int) -> None:
        if self._journals:
            self._journals[-1].remember(owner, self._balances)
        self._balances[owner] = balance

    def _pay_out(self, owner: Hashable, amount: int) -> None:
        """Invoke the transfer collaborator; any failure becomes TransferFailed"""
        try:
            delivered = self.transfer.transfer_value(owner, amount)
        except Exception as e:
            raise TransferFailed(to=owner, amount=amount) from e

        if not delivered:
            raise TransferFailed(to=owner, amount=amount)

    def _publish(self, event_type: VaultEvent, owner: Hashable, amount: int, index: int) -> None:
        event = EventPayload(event_type=event_type, owner=owner, amount=amount, index=index)
        if self._journals:
            self._journals[-1].events.append(event)
        else:
            self.dispatcher.publish(event)

    def _log_rejection(self, action: str, owner: Hashable, amount: Any, error: Exception) -> None:
        log_action(
            self.logger, "warning", f"{action} rejected: {error}",
            owner=owner, action=action,
            extra={"amount": amount if isinstance(amount, int) else repr(amount),
                   "error": type(error).__name__}
        )
