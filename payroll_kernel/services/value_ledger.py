"""
ValueLedger -- u64 balances for actor wallets and record slots.

Responsibility:
    Holds and moves value between two kinds of holders: actor wallets
    (``ActorId``) and record slots (``RecordAddress``).  Storage deposits,
    refunds and the reclaim sweep are all transfers through this service.

Architecture position:
    Kernel > Services -- imperative shell.  Used by RecordStore and
    PayrollService.

Invariants enforced:
    - Every balance is a u64.  Credits that would exceed 2**64 - 1 raise
      ArithmeticOverflowError; nothing wraps.
    - Debits never take a balance below zero (InsufficientFundsError).
    - transfer() conserves value: source loss == destination gain.
    - While an instruction is active, both ends of a transfer must be
      declared writable (WriteGuard).

Failure modes:
    - InsufficientFundsError, ArithmeticOverflowError, UndeclaredWriteError.
    - RecordNotFoundError when a slot holder does not exist.
"""

from __future__ import annotations

from sqlalchemy import select
from sqlalchemy.orm import Session

from payroll_kernel.domain.keys import ActorId, Key32, RecordAddress
from payroll_kernel.exceptions import (
    ArithmeticOverflowError,
    InsufficientFundsError,
    RecordNotFoundError,
)
from payroll_kernel.logging_config import get_logger
from payroll_kernel.models.record_slot import RecordSlot
from payroll_kernel.models.wallet import WalletBalance
from payroll_kernel.services.base import BaseService
from payroll_kernel.services.write_guard import WriteGuard

logger = get_logger("services.value_ledger")

U64_MAX = 2**64 - 1

Holder = ActorId | RecordAddress


class ValueLedger(BaseService[WalletBalance]):
    """
    Balance bookkeeping for wallets and slots.

    Non-goals:
        - Does NOT pay salaries.  Value only moves for deposits, refunds,
          explicit attachments and the reclaim sweep.
    """

    def __init__(self, session: Session, guard: WriteGuard | None = None):
        super().__init__(session)
        self._guard = guard or WriteGuard()

    # Row access

    def _wallet(self, actor: ActorId, create: bool = False) -> WalletBalance | None:
        wallet = self.session.execute(
            select(WalletBalance).where(WalletBalance.actor == actor.hex)
        ).scalar_one_or_none()
        if wallet is None and create:
            wallet = WalletBalance(actor=actor.hex, balance=0)
            self.session.add(wallet)
            self.session.flush()
        return wallet

    def _slot(self, address: RecordAddress) -> RecordSlot:
        slot = self.session.execute(
            select(RecordSlot).where(RecordSlot.address == address.hex)
        ).scalar_one_or_none()
        if slot is None:
            raise RecordNotFoundError(address.hex)
        return slot

    def _holder_row(self, holder: Holder, create: bool = False):
        if isinstance(holder, ActorId):
            return self._wallet(holder, create=create)
        if isinstance(holder, RecordAddress):
            return self._slot(holder)
        raise TypeError(f"Unsupported value holder {type(holder).__name__}")

    # Queries

    def balance_of(self, holder: Holder) -> int:
        """Current balance; wallets that never received value hold 0."""
        row = self._holder_row(holder)
        return row.balance if row is not None else 0

    def total_value(self) -> int:
        """Sum of every wallet and slot balance."""
        wallets = self.session.execute(select(WalletBalance.balance)).scalars().all()
        slots = self.session.execute(select(RecordSlot.balance)).scalars().all()
        return sum(wallets) + sum(slots)

    # Mutations

    def _credit(self, holder: Holder, amount: int, operation: str) -> int:
        row = self._holder_row(holder, create=True)
        new_balance = row.balance + amount
        if new_balance > U64_MAX:
            raise ArithmeticOverflowError("balance", operation)
        row.balance = new_balance
        return new_balance

    def _debit(self, holder: Holder, amount: int) -> int:
        row = self._holder_row(holder)
        available = row.balance if row is not None else 0
        if available < amount:
            raise InsufficientFundsError(holder.hex, amount, available)
        row.balance = available - amount
        return row.balance

    @staticmethod
    def _check_amount(amount: int) -> None:
        if amount < 0:
            raise ValueError(f"Amount must be non-negative, got {amount}")
        if amount > U64_MAX:
            raise ArithmeticOverflowError("amount", "validate")

    def fund(self, actor: ActorId, amount: int) -> int:
        """
        Credit an actor's wallet from outside the ledger (deposit, faucet).

        Returns:
            The new wallet balance.
        """
        self._check_amount(amount)
        self._guard.check(actor)
        balance = self._credit(actor, amount, "fund")
        self.session.flush()
        logger.info(
            "wallet_funded",
            extra={"actor": actor.hex, "amount": amount, "balance": balance},
        )
        return balance

    def transfer(self, source: Holder, destination: Holder, amount: int) -> None:
        """
        Move ``amount`` from ``source`` to ``destination``.

        Raises:
            UndeclaredWriteError: Either end not writable in the active instruction.
            InsufficientFundsError: Source balance below ``amount``.
            ArithmeticOverflowError: Destination would exceed u64.
        """
        self._check_amount(amount)
        self._guard.check(source)
        self._guard.check(destination)
        if amount == 0:
            return
        self._debit(source, amount)
        self._credit(destination, amount, "transfer")
        self.session.flush()
        logger.debug(
            "value_transferred",
            extra={
                "source": source.hex,
                "destination": destination.hex,
                "amount": amount,
            },
        )

    def attach_value(self, payer: ActorId, address: RecordAddress, amount: int) -> int:
        """
        Attach value from a wallet to a record slot.

        Returns:
            The slot's new balance.
        """
        self.transfer(payer, address, amount)
        return self.balance_of(address)
