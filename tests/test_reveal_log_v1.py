from __future__ import annotations

import pytest

from mpc_sint.reveal_log import DS_EMPTY, DS_NODE, RevealLogV1, merkle_root_v1, sha256


def test_merkle_root_v1_empty_and_singleton() -> None:
    assert merkle_root_v1([]) == sha256(DS_EMPTY)
    h = b"\xAA" * 32
    assert merkle_root_v1([h]) == sha256(DS_NODE + h + h)


def test_merkle_root_v1_odd_level_duplicates_last() -> None:
    a, b, c = b"\x01" * 32, b"\x02" * 32, b"\x03" * 32
    ab = sha256(DS_NODE + a + b)
    cc = sha256(DS_NODE + c + c)
    assert merkle_root_v1([a, b, c]) == sha256(DS_NODE + ab + cc)


def test_reveal_log_records_hash_not_value() -> None:
    log = RevealLogV1(salt32=b"\x05" * 32)
    r0 = log.record(bits=64, handle_ref=3, value=42)
    r1 = log.record(bits=64, handle_ref=4, value=42)
    assert (r0.seq_no, r1.seq_no) == (0, 1)
    assert r0.value_hash32 == r1.value_hash32
    assert r0.leaf_hash32 != r1.leaf_hash32
    assert len(log) == 2
    assert [r.seq_no for r in log.since(1)] == [1]


def test_reveal_log_root_depends_on_salt_and_history() -> None:
    a = RevealLogV1(salt32=b"\x05" * 32)
    b = RevealLogV1(salt32=b"\x06" * 32)
    assert a.root() == b.root()
    a.record(bits=8, handle_ref=0, value=1)
    b.record(bits=8, handle_ref=0, value=1)
    assert a.root() != b.root()


def test_reveal_log_rejects_bad_salt() -> None:
    with pytest.raises(ValueError):
        RevealLogV1(salt32=b"\x00" * 31)
