"""Unit tests for the integrity chain."""

import hashlib
from uuid import uuid4

import pytest

from logvault.domain.archive.chain import (
    GENESIS_HASH,
    ChainLink,
    link_hash,
    sha256_hex,
    verify_chain,
    verify_digest,
)
from logvault.domain.shared.error import DigestMismatchError


def _build_chain(n: int) -> list[ChainLink]:
    links = []
    prev = GENESIS_HASH
    for i in range(n):
        job_id = uuid4()
        digest = sha256_hex(f"object-{i}".encode())
        chain_hash = link_hash(prev, digest, job_id)
        links.append(ChainLink(job_id=job_id, digest=digest, chain_hash=chain_hash))
        prev = chain_hash
    return links


class TestLinkHash:
    def test_genesis_is_all_zeros(self):
        assert GENESIS_HASH == "0" * 64

    def test_hashes_concatenation_in_fixed_order(self):
        job_id = uuid4()
        digest = "ab" * 32
        expected = hashlib.sha256(f"{GENESIS_HASH}{digest}{job_id}".encode()).hexdigest()

        assert link_hash(GENESIS_HASH, digest, job_id) == expected

    def test_deterministic(self):
        job_id = uuid4()
        assert link_hash("a" * 64, "b" * 64, job_id) == link_hash("a" * 64, "b" * 64, job_id)

    def test_order_sensitive(self):
        job_id = uuid4()
        a, b = "a" * 64, "b" * 64
        assert link_hash(a, b, job_id) != link_hash(b, a, job_id)

    def test_different_predecessor_gives_different_hash(self):
        job_id = uuid4()
        digest = "c" * 64
        assert link_hash(GENESIS_HASH, digest, job_id) != link_hash("1" * 64, digest, job_id)

    def test_job_id_accepted_as_uuid_or_str(self):
        job_id = uuid4()
        assert link_hash(GENESIS_HASH, "d" * 64, job_id) == link_hash(
            GENESIS_HASH, "d" * 64, str(job_id)
        )


class TestVerifyDigest:
    def test_matching_digest_passes(self):
        data = b"payload"
        verify_digest(data, sha256_hex(data))

    def test_uppercase_expected_passes(self):
        data = b"payload"
        verify_digest(data, sha256_hex(data).upper())

    def test_mismatch_raises_with_both_digests(self):
        data = b"payload"
        wrong = sha256_hex(b"other")

        with pytest.raises(DigestMismatchError) as exc_info:
            verify_digest(data, wrong, key="logs/k")

        assert exc_info.value.expected == wrong
        assert exc_info.value.actual == sha256_hex(data)
        assert exc_info.value.key == "logs/k"


class TestVerifyChain:
    def test_empty_chain_is_ok(self):
        audit = verify_chain([])
        assert audit.ok
        assert audit.checked == 0

    def test_intact_chain(self):
        audit = verify_chain(_build_chain(5))
        assert audit.ok
        assert audit.checked == 5

    def test_edited_digest_breaks_at_that_link(self):
        links = _build_chain(4)
        tampered = ChainLink(
            job_id=links[2].job_id, digest="f" * 64, chain_hash=links[2].chain_hash
        )
        links[2] = tampered

        audit = verify_chain(links)

        assert not audit.ok
        assert audit.checked == 2
        assert audit.broken_at == tampered
        assert audit.expected_hash != tampered.chain_hash

    def test_dropped_link_is_detected(self):
        links = _build_chain(3)
        del links[1]

        audit = verify_chain(links)

        assert not audit.ok
        assert audit.broken_at == links[1]

    def test_reordering_is_detected(self):
        links = _build_chain(3)
        links[0], links[1] = links[1], links[0]

        assert not verify_chain(links).ok
