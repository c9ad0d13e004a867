"""
Record layouts -- versioned fixed-capacity block encoding.

Responsibility:
    Encodes and decodes Payroll and Employee records to and from the byte
    blocks held by the record store, and computes the exact storage
    capacity each record needs.

Architecture position:
    Kernel > Domain -- pure functional core, zero I/O.

Block format::

    discriminator (8) | layout version (u8) | fields...

    discriminator = sha256("account:<Kind>")[:8]
    integers little-endian; bounded strings / byte arrays are
    u32 length prefix + bytes; string limits count UTF-8 bytes.

    Payroll v1:  admin (32) | employee_count (u64) | company_name (<=50)
    Employee v1: payroll (32) | wallet (32) | name (<=50) | role (<=32)
                 | pin (<=10) | schedule (<=20) | ciphertext (<=256)
                 | input_type (u8)
    Employee v2: Employee v1 | next_payment_ts (i64) | last_paid_ts (i64)

Blocks are zero-padded up to the slot capacity.  Decoding tolerates
zero padding and rejects any other trailing bytes.

Invariants enforced:
    - Exceeding a bounded field's maximum raises CapacityExceededError;
      nothing is ever truncated.
    - Integers outside their declared width raise ArithmeticOverflowError.
    - v1 Employee blocks are readable (timestamps decode as 0); all writes
      use the current version.
"""

from __future__ import annotations

import hashlib
import struct
from dataclasses import dataclass

from payroll_kernel.domain.keys import KEY_SIZE, ActorId, RecordAddress
from payroll_kernel.domain.records import EmployeeRecord, PayrollRecord, RecordKind
from payroll_kernel.exceptions import (
    ArithmeticOverflowError,
    CapacityExceededError,
    CorruptRecordError,
    RecordKindMismatchError,
    UnsupportedLayoutVersionError,
)

DISCRIMINATOR_SIZE = 8
HEADER_SIZE = DISCRIMINATOR_SIZE + 1
LENGTH_PREFIX_SIZE = 4

U8_MAX = 2**8 - 1
U64_MAX = 2**64 - 1
I64_MIN = -(2**63)
I64_MAX = 2**63 - 1

PAYROLL_LAYOUT_VERSION = 1
EMPLOYEE_LAYOUT_VERSION = 2
EMPLOYEE_LEGACY_VERSION = 1


@dataclass(frozen=True)
class BoundedField:
    """A length-prefixed field with an explicit maximum byte budget."""

    name: str
    max_bytes: int

    @property
    def max_encoded(self) -> int:
        return LENGTH_PREFIX_SIZE + self.max_bytes


COMPANY_NAME = BoundedField("company_name", 50)
EMPLOYEE_NAME = BoundedField("name", 50)
EMPLOYEE_ROLE = BoundedField("role", 32)
EMPLOYEE_PIN = BoundedField("pin", 10)
EMPLOYEE_SCHEDULE = BoundedField("schedule", 20)
EMPLOYEE_CIPHERTEXT = BoundedField("ciphertext", 256)

_EMPLOYEE_STRINGS = (EMPLOYEE_NAME, EMPLOYEE_ROLE, EMPLOYEE_PIN, EMPLOYEE_SCHEDULE)


def discriminator(kind: RecordKind) -> bytes:
    """First 8 bytes of sha256("account:<Kind>")."""
    return hashlib.sha256(f"account:{kind.value}".encode("utf-8")).digest()[
        :DISCRIMINATOR_SIZE
    ]


_DISCRIMINATORS: dict[bytes, RecordKind] = {
    discriminator(kind): kind for kind in RecordKind
}


# Fixed capacities

PAYROLL_CAPACITY = HEADER_SIZE + KEY_SIZE + 8 + COMPANY_NAME.max_encoded

_EMPLOYEE_FIXED = HEADER_SIZE + KEY_SIZE + KEY_SIZE + 1 + 8 + 8

EMPLOYEE_MAX_CAPACITY = (
    _EMPLOYEE_FIXED
    + sum(f.max_encoded for f in _EMPLOYEE_STRINGS)
    + EMPLOYEE_CIPHERTEXT.max_encoded
)

MAX_CAPACITY: dict[RecordKind, int] = {
    RecordKind.PAYROLL: PAYROLL_CAPACITY,
    RecordKind.EMPLOYEE: EMPLOYEE_MAX_CAPACITY,
}


# ---------------------------------------------------------------------------
# Primitive writer / reader
# ---------------------------------------------------------------------------


class _Writer:
    def __init__(self, kind: RecordKind, version: int):
        self._buf = bytearray(discriminator(kind))
        self._buf.append(version)

    def u8(self, name: str, value: int) -> None:
        if not 0 <= value <= U8_MAX:
            raise CapacityExceededError(name, value, U8_MAX)
        self._buf.append(value)

    def u64(self, name: str, value: int) -> None:
        if not 0 <= value <= U64_MAX:
            raise ArithmeticOverflowError(name, "encode")
        self._buf += struct.pack("<Q", value)

    def i64(self, name: str, value: int) -> None:
        if not I64_MIN <= value <= I64_MAX:
            raise ArithmeticOverflowError(name, "encode")
        self._buf += struct.pack("<q", value)

    def key(self, value: ActorId | RecordAddress) -> None:
        self._buf += value.raw

    def bounded_bytes(self, field: BoundedField, value: bytes) -> None:
        if len(value) > field.max_bytes:
            raise CapacityExceededError(field.name, len(value), field.max_bytes)
        self._buf += struct.pack("<I", len(value))
        self._buf += value

    def bounded_str(self, field: BoundedField, value: str) -> None:
        self.bounded_bytes(field, value.encode("utf-8"))

    def getvalue(self) -> bytes:
        return bytes(self._buf)


class _Reader:
    def __init__(self, kind: RecordKind, data: bytes):
        self._kind = kind
        self._data = data
        self._offset = HEADER_SIZE

    def _take(self, size: int) -> bytes:
        end = self._offset + size
        if end > len(self._data):
            raise CorruptRecordError(
                self._kind.value,
                f"truncated at offset {self._offset} (need {size} bytes)",
            )
        chunk = self._data[self._offset:end]
        self._offset = end
        return chunk

    def u8(self) -> int:
        return self._take(1)[0]

    def u64(self) -> int:
        return struct.unpack("<Q", self._take(8))[0]

    def i64(self) -> int:
        return struct.unpack("<q", self._take(8))[0]

    def key(self) -> bytes:
        return self._take(KEY_SIZE)

    def bounded_bytes(self, field: BoundedField) -> bytes:
        (length,) = struct.unpack("<I", self._take(LENGTH_PREFIX_SIZE))
        if length > field.max_bytes:
            raise CorruptRecordError(
                self._kind.value,
                f"{field.name} length {length} exceeds {field.max_bytes}",
            )
        return self._take(length)

    def bounded_str(self, field: BoundedField) -> str:
        raw = self.bounded_bytes(field)
        try:
            return raw.decode("utf-8")
        except UnicodeDecodeError as exc:
            raise CorruptRecordError(
                self._kind.value, f"{field.name} is not valid UTF-8"
            ) from exc

    def finish(self) -> None:
        # Zero padding up to slot capacity is allowed, anything else is not.
        tail = self._data[self._offset:]
        if tail.strip(b"\x00"):
            raise CorruptRecordError(
                self._kind.value, f"non-zero trailing bytes at offset {self._offset}"
            )


# ---------------------------------------------------------------------------
# Header inspection
# ---------------------------------------------------------------------------


def peek_kind(data: bytes) -> RecordKind:
    """Identify a block's record kind from its discriminator."""
    if len(data) < HEADER_SIZE:
        raise CorruptRecordError("Record", f"block of {len(data)} bytes has no header")
    kind = _DISCRIMINATORS.get(bytes(data[:DISCRIMINATOR_SIZE]))
    if kind is None:
        raise CorruptRecordError("Record", "unknown discriminator")
    return kind


def layout_version(data: bytes) -> int:
    if len(data) < HEADER_SIZE:
        raise CorruptRecordError("Record", f"block of {len(data)} bytes has no header")
    return data[DISCRIMINATOR_SIZE]


def _expect_kind(data: bytes, expected: RecordKind, address: str) -> int:
    actual = peek_kind(data)
    if actual is not expected:
        raise RecordKindMismatchError(address, expected.value, actual.value)
    return layout_version(data)


# ---------------------------------------------------------------------------
# Payroll
# ---------------------------------------------------------------------------


def encode_payroll(record: PayrollRecord) -> bytes:
    w = _Writer(RecordKind.PAYROLL, PAYROLL_LAYOUT_VERSION)
    w.key(record.admin)
    w.u64("employee_count", record.employee_count)
    w.bounded_str(COMPANY_NAME, record.company_name)
    return w.getvalue()


def decode_payroll(data: bytes, address: str = "<unknown>") -> PayrollRecord:
    version = _expect_kind(data, RecordKind.PAYROLL, address)
    if version != PAYROLL_LAYOUT_VERSION:
        raise UnsupportedLayoutVersionError(RecordKind.PAYROLL.value, version)
    r = _Reader(RecordKind.PAYROLL, data)
    record = PayrollRecord(
        admin=ActorId(r.key()),
        employee_count=r.u64(),
        company_name=r.bounded_str(COMPANY_NAME),
    )
    r.finish()
    return record


# ---------------------------------------------------------------------------
# Employee
# ---------------------------------------------------------------------------


def encode_employee(record: EmployeeRecord) -> bytes:
    w = _Writer(RecordKind.EMPLOYEE, EMPLOYEE_LAYOUT_VERSION)
    w.key(record.payroll)
    w.key(record.wallet)
    w.bounded_str(EMPLOYEE_NAME, record.name)
    w.bounded_str(EMPLOYEE_ROLE, record.role)
    w.bounded_str(EMPLOYEE_PIN, record.pin)
    w.bounded_str(EMPLOYEE_SCHEDULE, record.schedule)
    w.bounded_bytes(EMPLOYEE_CIPHERTEXT, record.ciphertext)
    w.u8("input_type", record.input_type)
    w.i64("next_payment_ts", record.next_payment_ts)
    w.i64("last_paid_ts", record.last_paid_ts)
    return w.getvalue()


def encode_employee_legacy(record: EmployeeRecord) -> bytes:
    """Version 1 block, without timestamps. Used to exercise migration reads."""
    w = _Writer(RecordKind.EMPLOYEE, EMPLOYEE_LEGACY_VERSION)
    w.key(record.payroll)
    w.key(record.wallet)
    w.bounded_str(EMPLOYEE_NAME, record.name)
    w.bounded_str(EMPLOYEE_ROLE, record.role)
    w.bounded_str(EMPLOYEE_PIN, record.pin)
    w.bounded_str(EMPLOYEE_SCHEDULE, record.schedule)
    w.bounded_bytes(EMPLOYEE_CIPHERTEXT, record.ciphertext)
    w.u8("input_type", record.input_type)
    return w.getvalue()


def decode_employee(data: bytes, address: str = "<unknown>") -> EmployeeRecord:
    version = _expect_kind(data, RecordKind.EMPLOYEE, address)
    if version not in (EMPLOYEE_LEGACY_VERSION, EMPLOYEE_LAYOUT_VERSION):
        raise UnsupportedLayoutVersionError(RecordKind.EMPLOYEE.value, version)
    r = _Reader(RecordKind.EMPLOYEE, data)
    payroll = RecordAddress(r.key())
    wallet = ActorId(r.key())
    name = r.bounded_str(EMPLOYEE_NAME)
    role = r.bounded_str(EMPLOYEE_ROLE)
    pin = r.bounded_str(EMPLOYEE_PIN)
    schedule = r.bounded_str(EMPLOYEE_SCHEDULE)
    ciphertext = r.bounded_bytes(EMPLOYEE_CIPHERTEXT)
    input_type = r.u8()
    next_payment_ts = 0
    last_paid_ts = 0
    if version >= EMPLOYEE_LAYOUT_VERSION:
        next_payment_ts = r.i64()
        last_paid_ts = r.i64()
    r.finish()
    return EmployeeRecord(
        payroll=payroll,
        wallet=wallet,
        name=name,
        role=role,
        pin=pin,
        schedule=schedule,
        ciphertext=ciphertext,
        input_type=input_type,
        next_payment_ts=next_payment_ts,
        last_paid_ts=last_paid_ts,
    )


def employee_capacity(record: EmployeeRecord) -> int:
    """Exact block size for ``record`` at the current layout version."""
    return len(encode_employee(record))
