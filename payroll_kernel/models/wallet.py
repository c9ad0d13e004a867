"""
Module: payroll_kernel.models.wallet
Responsibility: ORM persistence for actor wallet balances.
Architecture position: Kernel > Models.  May import from db/base.py only.

Invariants enforced:
    - One row per actor; rows are created lazily on first credit.
    - Balance is a u64 (UInt64String rejects anything outside the range).
"""

from sqlalchemy import String
from sqlalchemy.orm import Mapped, mapped_column

from payroll_kernel.db.base import TrackedBase, UInt64String


class WalletBalance(TrackedBase):
    """Value held by one actor."""

    __tablename__ = "wallet_balances"

    # ActorId, lowercase hex
    actor: Mapped[str] = mapped_column(
        String(64),
        nullable=False,
        unique=True,
    )

    balance: Mapped[int] = mapped_column(
        UInt64String(),
        nullable=False,
        default=0,
    )

    def __repr__(self) -> str:
        return f"<WalletBalance {self.actor[:12]}... {self.balance}>"
