"""
Typed Exception Hierarchy for the Payroll Kernel.

===============================================================================
WHY TYPED EXCEPTIONS
===============================================================================

Callers of the kernel (hosts, disbursement bots, client tooling) must react
to failures precisely: retry with a different signer, shrink a payload,
pick a different wallet.  Parsing message strings for that is fragile, so:

  1. Every error has a TYPED exception class (catch by type, not message)
  2. Every exception has a CODE attribute (machine-readable, API-safe)
  3. Exceptions carry structured DATA (not just a message string)

Example:
    try:
        processor.process(instruction)
    except CapacityExceededError as e:
        api_response(code=e.code, field=e.field_name, limit=e.limit)

===============================================================================
EXCEPTION HIERARCHY
===============================================================================

    PayrollKernelError (base)
    |
    +-- AuthorizationError
    |   +-- UnauthorizedError
    |
    +-- RecordError
    |   +-- RecordNotFoundError
    |   +-- RecordAlreadyExistsError
    |   +-- CapacityExceededError
    |   +-- RecordKindMismatchError
    |   +-- UnsupportedLayoutVersionError
    |   +-- CorruptRecordError
    |   +-- UndeclaredWriteError
    |   +-- ReclaimError
    |
    +-- AddressError
    |   +-- AddressMismatchError
    |   +-- InvalidSeedError
    |
    +-- BalanceError
    |   +-- ArithmeticOverflowError
    |   +-- InsufficientFundsError
    |
    +-- InstructionError
    |   +-- UnknownOperationError
    |   +-- MissingAccountError
    |
    +-- EventLogError
    |   +-- EventChainBrokenError
    |
    +-- ImmutabilityError
        +-- ImmutabilityViolationError

===============================================================================
ERROR CODES - QUICK REFERENCE
===============================================================================

Category        | Code                        | When Raised
----------------|-----------------------------|-----------------------------------------
Authorization   | UNAUTHORIZED                | Signer is not the payroll administrator
----------------|-----------------------------|-----------------------------------------
Record          | NOT_FOUND                   | No record at the derived address
                | ALREADY_EXISTS              | Create on an occupied address
                | CAPACITY_EXCEEDED           | Field or block larger than its budget
                | RECORD_KIND_MISMATCH        | Block discriminator names another kind
                | UNSUPPORTED_LAYOUT_VERSION  | Block written by an unknown layout
                | CORRUPT_RECORD              | Block truncated or has trailing bytes
                | UNDECLARED_WRITE            | Write to an address not declared writable
                | RECLAIM_FAILED              | Slot balance not zero after sweep
----------------|-----------------------------|-----------------------------------------
Address         | ADDRESS_MISMATCH            | Declared address differs from derived one
                | INVALID_SEED                | Seed too long / too many seeds
----------------|-----------------------------|-----------------------------------------
Balance         | ARITHMETIC_OVERFLOW         | Checked u64/i64 arithmetic overflowed
                | INSUFFICIENT_FUNDS          | Payer cannot cover a deposit or transfer
----------------|-----------------------------|-----------------------------------------
Instruction     | UNKNOWN_OPERATION           | Operation name not registered
                | MISSING_ACCOUNT             | Required account role not declared
----------------|-----------------------------|-----------------------------------------
Event log       | EVENT_CHAIN_BROKEN          | Hash chain validation failed
----------------|-----------------------------|-----------------------------------------
Immutability    | IMMUTABILITY_VIOLATION      | UPDATE/DELETE of an append-only row

===============================================================================
PROPAGATION
===============================================================================

Services never catch kernel errors.  The InstructionProcessor rolls back the
instruction's savepoint and re-raises the original exception unchanged, so
the caller always sees the precise type and no partial state survives.
"""


class PayrollKernelError(Exception):
    """
    Base exception for all payroll kernel errors.

    All subclasses must have a `code` class attribute for machine-readable
    error identification.
    """

    code: str = "PAYROLL_KERNEL_ERROR"


# Authorization


class AuthorizationError(PayrollKernelError):
    """Base exception for authorization failures."""

    code: str = "AUTHORIZATION_ERROR"


class UnauthorizedError(AuthorizationError):
    """Signer does not match the payroll's stored administrator."""

    code: str = "UNAUTHORIZED"

    def __init__(self, actor: str, payroll: str, operation: str):
        self.actor = actor
        self.payroll = payroll
        self.operation = operation
        super().__init__(
            f"Actor {actor} is not the administrator of payroll {payroll} "
            f"(operation: {operation})"
        )


# Record store


class RecordError(PayrollKernelError):
    """Base exception for record store errors."""

    code: str = "RECORD_ERROR"


class RecordNotFoundError(RecordError):
    """No record lives at the given address."""

    code: str = "NOT_FOUND"

    def __init__(self, address: str, kind: str | None = None):
        self.address = address
        self.kind = kind
        label = kind or "Record"
        super().__init__(f"{label} not found at {address}")


class RecordAlreadyExistsError(RecordError):
    """A record already occupies the address being created."""

    code: str = "ALREADY_EXISTS"

    def __init__(self, address: str, kind: str):
        self.address = address
        self.kind = kind
        super().__init__(f"{kind} already exists at {address}")


class CapacityExceededError(RecordError):
    """A bounded field, or a whole block, exceeds its declared maximum."""

    code: str = "CAPACITY_EXCEEDED"

    def __init__(self, field_name: str, size: int, limit: int):
        self.field_name = field_name
        self.size = size
        self.limit = limit
        super().__init__(
            f"{field_name} has size {size}, exceeds maximum of {limit}"
        )


class RecordKindMismatchError(RecordError):
    """Block discriminator does not name the expected record kind."""

    code: str = "RECORD_KIND_MISMATCH"

    def __init__(self, address: str, expected_kind: str, actual_kind: str):
        self.address = address
        self.expected_kind = expected_kind
        self.actual_kind = actual_kind
        super().__init__(
            f"Record at {address} is {actual_kind}, expected {expected_kind}"
        )


class UnsupportedLayoutVersionError(RecordError):
    """Block was written by a layout version this kernel cannot read."""

    code: str = "UNSUPPORTED_LAYOUT_VERSION"

    def __init__(self, kind: str, version: int):
        self.kind = kind
        self.version = version
        super().__init__(f"Unsupported {kind} layout version {version}")


class CorruptRecordError(RecordError):
    """Block bytes do not decode cleanly (truncated or trailing data)."""

    code: str = "CORRUPT_RECORD"

    def __init__(self, kind: str, reason: str):
        self.kind = kind
        self.reason = reason
        super().__init__(f"Corrupt {kind} block: {reason}")


class UndeclaredWriteError(RecordError):
    """Instruction attempted to mutate an address it did not declare writable."""

    code: str = "UNDECLARED_WRITE"

    def __init__(self, address: str, operation: str | None):
        self.address = address
        self.operation = operation
        super().__init__(
            f"Write to {address} not declared by operation {operation or '<none>'}"
        )


class ReclaimError(RecordError):
    """Slot still holds value after the sweep; deallocation refused."""

    code: str = "RECLAIM_FAILED"

    def __init__(self, address: str, remaining: int):
        self.address = address
        self.remaining = remaining
        super().__init__(
            f"Cannot reclaim {address}: {remaining} units remain after sweep"
        )


# Addressing


class AddressError(PayrollKernelError):
    """Base exception for address derivation errors."""

    code: str = "ADDRESS_ERROR"


class AddressMismatchError(AddressError):
    """A declared address is not the one its seeds derive to."""

    code: str = "ADDRESS_MISMATCH"

    def __init__(self, role: str, expected: str, actual: str):
        self.role = role
        self.expected = expected
        self.actual = actual
        super().__init__(
            f"Address mismatch for {role}: expected {expected}, got {actual}"
        )


class InvalidSeedError(AddressError):
    """Seed components violate the derivation limits."""

    code: str = "INVALID_SEED"

    def __init__(self, reason: str):
        self.reason = reason
        super().__init__(f"Invalid seeds: {reason}")


# Balances


class BalanceError(PayrollKernelError):
    """Base exception for value balance errors."""

    code: str = "BALANCE_ERROR"


class ArithmeticOverflowError(BalanceError):
    """Checked counter/value/timestamp arithmetic would leave its range."""

    code: str = "ARITHMETIC_OVERFLOW"

    def __init__(self, quantity: str, operation: str):
        self.quantity = quantity
        self.operation = operation
        super().__init__(f"Arithmetic overflow on {quantity} during {operation}")


class InsufficientFundsError(BalanceError):
    """Payer balance cannot cover a deposit or transfer."""

    code: str = "INSUFFICIENT_FUNDS"

    def __init__(self, holder: str, required: int, available: int):
        self.holder = holder
        self.required = required
        self.available = available
        super().__init__(
            f"Insufficient funds in {holder}: required {required}, "
            f"available {available}"
        )


# Instructions


class InstructionError(PayrollKernelError):
    """Base exception for instruction dispatch errors."""

    code: str = "INSTRUCTION_ERROR"


class UnknownOperationError(InstructionError):
    """No handler is registered for the operation name."""

    code: str = "UNKNOWN_OPERATION"

    def __init__(self, operation: str):
        self.operation = operation
        super().__init__(f"Unknown operation: {operation}")


class MissingAccountError(InstructionError):
    """Instruction does not declare an account its operation requires."""

    code: str = "MISSING_ACCOUNT"

    def __init__(self, operation: str, role: str):
        self.operation = operation
        self.role = role
        super().__init__(f"Operation {operation} requires a '{role}' account")


# Event log


class EventLogError(PayrollKernelError):
    """Base exception for event log errors."""

    code: str = "EVENT_LOG_ERROR"


class EventChainBrokenError(EventLogError):
    """Payment event hash chain failed validation."""

    code: str = "EVENT_CHAIN_BROKEN"

    def __init__(self, seq: int, expected_hash: str, actual_hash: str):
        self.seq = seq
        self.expected_hash = expected_hash
        self.actual_hash = actual_hash
        super().__init__(
            f"Event chain broken at seq {seq}: "
            f"expected {expected_hash}, got {actual_hash}"
        )


# Immutability


class ImmutabilityError(PayrollKernelError):
    """Base exception for immutability violations."""

    code: str = "IMMUTABILITY_ERROR"


class ImmutabilityViolationError(ImmutabilityError):
    """Attempted to modify or delete an append-only row."""

    code: str = "IMMUTABILITY_VIOLATION"

    def __init__(self, entity_type: str, entity_id: str, reason: str):
        self.entity_type = entity_type
        self.entity_id = entity_id
        self.reason = reason
        super().__init__(
            f"Cannot modify {entity_type} {entity_id}: {reason}"
        )
