"""
Address Deriver -- deterministic record addresses without a central index.

Responsibility:
    Computes the address of a record from a namespace tag and an ordered
    sequence of seed components.  Payroll and Employee records are located
    exclusively through these derivations.

Architecture position:
    Kernel > Domain -- pure functional core, zero I/O.

Invariants enforced:
    - Determinism: identical (program_id, namespace, seeds) always yield
      the identical address.
    - Injectivity: the hashed preimage is length-prefixed component by
      component, so distinct seed tuples never share a preimage
      (``[b"ab", b"c"]`` vs ``[b"a", b"bc"]``).  Collisions then reduce to
      SHA-256 collisions.
    - Domain separation: a fixed tag and the program id prefix every
      preimage, so addresses of different deployments never overlap.

Failure modes:
    - InvalidSeedError if a seed or namespace exceeds MAX_SEED_LEN bytes or
      more than MAX_SEEDS seeds are supplied.

Layout of the hashed preimage::

    TAG | u8 len(program_id) | program_id | u8 len(ns) | ns
        | u8 count | (u8 len(seed) | seed)*
"""

from __future__ import annotations

import hashlib
from typing import Sequence

from payroll_kernel.domain.keys import ActorId, Key32, RecordAddress
from payroll_kernel.exceptions import InvalidSeedError

ADDRESS_TAG = b"payroll-kernel/derived-address/v1"
MAX_SEED_LEN = 32
MAX_SEEDS = 16

PAYROLL_NAMESPACE = b"payroll"
EMPLOYEE_NAMESPACE = b"employee"

DEFAULT_PROGRAM_ID = hashlib.sha256(b"payroll-kernel/program").digest()

Seed = bytes | Key32


def _seed_bytes(seed: Seed) -> bytes:
    if isinstance(seed, Key32):
        return seed.raw
    if isinstance(seed, (bytes, bytearray)):
        return bytes(seed)
    raise InvalidSeedError(f"unsupported seed type {type(seed).__name__}")


def derive(
    namespace: bytes,
    seeds: Sequence[Seed],
    program_id: bytes = DEFAULT_PROGRAM_ID,
) -> RecordAddress:
    """
    Derive a record address.

    Args:
        namespace: Record namespace tag (e.g. b"payroll").
        seeds: Ordered seed components (keys or raw bytes).
        program_id: Deployment identifier used for domain separation.

    Returns:
        The derived RecordAddress.

    Raises:
        InvalidSeedError: If limits on seed count or length are violated.
    """
    if len(namespace) > MAX_SEED_LEN:
        raise InvalidSeedError(
            f"namespace is {len(namespace)} bytes, max {MAX_SEED_LEN}"
        )
    if len(seeds) > MAX_SEEDS:
        raise InvalidSeedError(f"{len(seeds)} seeds supplied, max {MAX_SEEDS}")

    h = hashlib.sha256()
    h.update(ADDRESS_TAG)
    h.update(bytes([len(program_id)]))
    h.update(program_id)
    h.update(bytes([len(namespace)]))
    h.update(namespace)
    h.update(bytes([len(seeds)]))
    for index, seed in enumerate(seeds):
        raw = _seed_bytes(seed)
        if len(raw) > MAX_SEED_LEN:
            raise InvalidSeedError(
                f"seed {index} is {len(raw)} bytes, max {MAX_SEED_LEN}"
            )
        h.update(bytes([len(raw)]))
        h.update(raw)
    return RecordAddress(h.digest())


class AddressDeriver:
    """
    Derivation bound to one deployment's program id.

    Contract:
        Payroll address  = derive("payroll",  [admin])
        Employee address = derive("employee", [payroll address, wallet])
    """

    def __init__(self, program_id: bytes = DEFAULT_PROGRAM_ID):
        if len(program_id) > MAX_SEED_LEN:
            raise InvalidSeedError(
                f"program id is {len(program_id)} bytes, max {MAX_SEED_LEN}"
            )
        self._program_id = program_id

    @property
    def program_id(self) -> bytes:
        return self._program_id

    def derive(self, namespace: bytes, seeds: Sequence[Seed]) -> RecordAddress:
        return derive(namespace, seeds, self._program_id)

    def payroll_address(self, admin: ActorId) -> RecordAddress:
        return self.derive(PAYROLL_NAMESPACE, [admin])

    def employee_address(
        self, payroll: RecordAddress, wallet: ActorId
    ) -> RecordAddress:
        return self.derive(EMPLOYEE_NAMESPACE, [payroll, wallet])
