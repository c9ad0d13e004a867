"""
Module: payroll_kernel.models.record_slot
Responsibility: ORM persistence for addressed, fixed-capacity record blocks.
Architecture position: Kernel > Models.  May import from db/base.py only.

Invariants enforced:
    - One slot per address (unique constraint).  Create-exclusivity is
      checked by RecordStore before INSERT; the constraint backs it.
    - ``len(data) == capacity`` at all times; blocks are zero-padded.
    - ``address`` and ``kind`` never change after INSERT (ORM listener).
    - A slot is deleted only once its attached balance is zero (ORM
      listener, see db/immutability.py).

Failure modes:
    - IntegrityError on a duplicate address.
    - ImmutabilityViolationError if address or kind is modified.
    - ReclaimError if a slot holding value is deleted.
"""

from sqlalchemy import Index, Integer, LargeBinary, SmallInteger, String
from sqlalchemy.orm import Mapped, mapped_column

from payroll_kernel.db.base import TrackedBase, UInt64String


class RecordSlot(TrackedBase):
    """
    Storage slot holding one encoded record.

    ``balance`` is the value attached to the slot: the storage deposit plus
    anything transferred in.  It is swept to a recipient on reclaim.
    """

    __tablename__ = "record_slots"

    __table_args__ = (
        Index("idx_record_slot_kind", "kind"),
    )

    # Derived address, lowercase hex
    address: Mapped[str] = mapped_column(
        String(64),
        nullable=False,
        unique=True,
    )

    # RecordKind value ("Payroll" / "Employee")
    kind: Mapped[str] = mapped_column(
        String(16),
        nullable=False,
    )

    layout_version: Mapped[int] = mapped_column(
        SmallInteger,
        nullable=False,
    )

    capacity: Mapped[int] = mapped_column(
        Integer,
        nullable=False,
    )

    data: Mapped[bytes] = mapped_column(
        LargeBinary,
        nullable=False,
    )

    balance: Mapped[int] = mapped_column(
        UInt64String(),
        nullable=False,
        default=0,
    )

    def __repr__(self) -> str:
        return f"<RecordSlot {self.kind} {self.address[:12]}... cap={self.capacity}>"
