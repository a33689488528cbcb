from __future__ import annotations

import gc
import json

import pytest
import torch

from mpc_sint.alu import (
    ARGS_BOTH_SECRET,
    ARGS_RHS_PUBLIC,
    OP_ADD,
    OP_DIV,
    OP_LT,
    OP_MUL,
    OP_REM,
    OP_SUB,
    HandleError,
)
from mpc_sint.config import CoreConfigV1
from mpc_sint.engine import LocalRSSEngineV1
from mpc_sint.rss import RSSWordV1, make_rss_word_triple_v1, open_word_v1, rss_pair_share_indices_v1
from mpc_sint.types import SecretWord


def _engine(seed: int = 7, log_level: str = "quiet") -> LocalRSSEngineV1:
    return LocalRSSEngineV1(config=CoreConfigV1(log_level=log_level, legacy_native_div=False, seed=seed))


def test_rss_pair_indices_wrap() -> None:
    assert rss_pair_share_indices_v1(0) == (0, 1)
    assert rss_pair_share_indices_v1(2) == (2, 0)
    with pytest.raises(ValueError):
        rss_pair_share_indices_v1(3)


def test_rss_word_triple_opens_to_value_and_detects_corruption() -> None:
    g = torch.Generator(device="cpu")
    g.manual_seed(123)
    views = make_rss_word_triple_v1(value=0xBEEF, bits=16, generator=g, device=torch.device("cpu"))
    assert open_word_v1(views) == 0xBEEF

    p0, p1, p2 = views
    bad_p1 = RSSWordV1(lo=p1.lo + 1, hi=p1.hi, bits=p1.bits)
    with pytest.raises(RuntimeError, match="replicated share mismatch"):
        open_word_v1((p0, bad_p1, p2))


def test_engine_linear_ops_wrap_mod_width() -> None:
    e = _engine()
    a = e.set_public(8, 250)
    b = e.set_public(8, 10)
    assert e.decrypt(8, e.binary(OP_ADD, 8, ARGS_BOTH_SECRET, a, b)) == 4
    assert e.decrypt(8, e.binary(OP_SUB, 8, ARGS_BOTH_SECRET, b, a)) == 16
    assert e.decrypt(8, e.binary(OP_MUL, 8, ARGS_RHS_PUBLIC, a, 3)) == (250 * 3) & 0xFF
    assert e.decrypt(8, e.not_(8, b)) == 0xF5


def test_engine_division_by_zero_is_zero() -> None:
    e = _engine()
    a = e.set_public(32, 99)
    z = e.set_public(32, 0)
    assert e.decrypt(32, e.binary(OP_DIV, 32, ARGS_BOTH_SECRET, a, z)) == 0
    assert e.decrypt(32, e.binary(OP_REM, 32, ARGS_BOTH_SECRET, a, z)) == 0


def test_engine_comparison_yields_bool_handle_and_mux_selects() -> None:
    e = _engine()
    a = e.set_public(64, 5)
    b = e.set_public(64, 9)
    p = e.binary(OP_LT, 64, ARGS_BOTH_SECRET, a, b)
    assert p.bits == 1
    assert e.decrypt(1, p) == 1
    assert e.decrypt(64, e.mux(p, a, b)) == 5
    q = e.binary(OP_LT, 64, ARGS_BOTH_SECRET, b, a)
    assert e.decrypt(64, e.mux(q, a, b)) == 9


def test_engine_rejects_unknown_and_mistyped_handles() -> None:
    e = _engine()
    h = e.set_public(8, 1)
    with pytest.raises(HandleError):
        e.decrypt(8, SecretWord(bits=8, ref=999))
    with pytest.raises(HandleError):
        e.decrypt(16, SecretWord(bits=16, ref=h.ref))
    with pytest.raises(ValueError):
        e.binary(OP_ADD, 8, ARGS_BOTH_SECRET, h, 1)
    with pytest.raises(ValueError):
        e.set_public(8, 256)


def test_engine_stats_and_reveal_log() -> None:
    e = _engine()
    a = e.set_public(16, 3)
    s = e.binary(OP_ADD, 16, ARGS_BOTH_SECRET, a, a)
    assert e.stats()["add"] == 1
    assert len(e.reveal_log) == 0
    assert e.decrypt(16, s) == 6
    assert len(e.reveal_log) == 1
    assert e.reveal_log.records()[0].handle_ref == s.ref
    assert e.handle_count() == 2


def test_engine_frees_shares_of_dropped_handles() -> None:
    e = _engine()
    a = e.set_public(32, 5)
    b = e.set_public(32, 6)
    before = e.handle_count()
    p = e.binary(OP_MUL, 32, ARGS_BOTH_SECRET, e.binary(OP_ADD, 32, ARGS_BOTH_SECRET, a, b), b)
    gc.collect()
    assert e.handle_count() == before + 1
    assert e.decrypt(32, p) == 66
    del p
    gc.collect()
    assert e.handle_count() == before

    e.release(a)
    e.release(a)
    assert e.handle_count() == before - 1
    with pytest.raises(HandleError):
        e.decrypt(32, a)
    assert e.decrypt(32, b) == 6


def test_engine_is_deterministic_under_seed() -> None:
    e1 = _engine(seed=42)
    e2 = _engine(seed=42)
    c1 = e1.offboard(32, e1.set_public(32, 1234))
    c2 = e2.offboard(32, e2.set_public(32, 1234))
    assert c1.blob == c2.blob
    assert e1.domain() == e2.domain()
    assert _engine(seed=43).domain() != e1.domain()


def test_engine_logs_reveals_at_debug(capsys: pytest.CaptureFixture[str]) -> None:
    e = _engine(log_level="debug")
    e.decrypt(8, e.set_public(8, 7))
    lines = [json.loads(x) for x in capsys.readouterr().out.splitlines() if x.strip()]
    reveals = [r for r in lines if r["event"] == "reveal"]
    assert len(reveals) == 1
    assert reveals[0]["fields"]["bits"] == 8
