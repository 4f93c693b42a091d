"""Integrity chain: tamper-evident link hashes over archived objects.

Each done job binds its predecessor's chain hash, its own content digest and
its own id into a new hash. Recomputing the sequence from stored
(digest, id) pairs must reproduce every stored chain hash; any edited digest,
dropped job or reordering breaks the sequence from that point on.
"""

import hashlib
from collections.abc import Iterable
from dataclasses import dataclass
from uuid import UUID

from logvault.domain.shared.error import DigestMismatchError

GENESIS_HASH = "0" * 64


def sha256_hex(data: bytes) -> str:
    return hashlib.sha256(data).hexdigest()


def link_hash(prev_hash: str, digest: str, job_id: UUID | str) -> str:
    """Hash `prev_hash + digest + job_id` in that order, hex-encoded."""
    h = hashlib.sha256()
    h.update(prev_hash.encode())
    h.update(digest.encode())
    h.update(str(job_id).encode())
    return h.hexdigest()


def verify_digest(data: bytes, expected: str, key: str | None = None) -> None:
    """Raise DigestMismatchError unless `data` hashes to `expected`."""
    actual = sha256_hex(data)
    if actual != expected.lower():
        raise DigestMismatchError(expected=expected, actual=actual, key=key)


@dataclass(frozen=True)
class ChainLink:
    job_id: UUID
    digest: str
    chain_hash: str


@dataclass(frozen=True)
class ChainAudit:
    """Outcome of recomputing a chain.

    `broken_at` is the first link whose stored hash does not match the
    recomputed one, or None when the whole chain checks out.
    """

    checked: int
    broken_at: ChainLink | None = None
    expected_hash: str | None = None

    @property
    def ok(self) -> bool:
        return self.broken_at is None


def verify_chain(links: Iterable[ChainLink], genesis: str = GENESIS_HASH) -> ChainAudit:
    prev = genesis
    checked = 0
    for link in links:
        expected = link_hash(prev, link.digest, link.job_id)
        if expected != link.chain_hash:
            return ChainAudit(checked=checked, broken_at=link, expected_hash=expected)
        checked += 1
        prev = link.chain_hash
    return ChainAudit(checked=checked)
