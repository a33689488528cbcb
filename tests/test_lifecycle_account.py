from __future__ import annotations

import os
import stat

import pytest

from mpc_sint.account import AccountError, UserAccountV1
from mpc_sint.alu import CiphertextError, UnknownAccountError, ValidationFailure
from mpc_sint.config import CoreConfigV1
from mpc_sint.core import SignedCoreV1
from mpc_sint.eip712 import InputTicketCommitV1
from mpc_sint.engine import LocalRSSEngineV1
from mpc_sint.sig import secp256k1_sign_hash
from mpc_sint.types import CiphertextV1, CompositeCiphertextV1, CompositeInputTicketV1, InputTicketV1, OutputBundleV1


def _setup(seed: int = 3):
    cfg = CoreConfigV1(log_level="quiet", legacy_native_div=False, seed=seed)
    engine = LocalRSSEngineV1(config=cfg)
    return engine, SignedCoreV1(engine, cfg)


def _onboarded(engine: LocalRSSEngineV1, fill: int = 0x41) -> UserAccountV1:
    acct = UserAccountV1(bytes([fill]) * 32)
    acct.onboard(engine)
    return acct


def test_onboarding_returns_user_key() -> None:
    engine, _ = _setup()
    acct = _onboarded(engine)
    assert acct.user_key32 is not None and len(acct.user_key32) == 32
    assert engine.is_onboarded(acct.address20)
    assert acct.to_json_obj()["onboarded"] is True


def test_onboarding_rejects_empty_and_foreign_signatures() -> None:
    engine, _ = _setup()
    a = UserAccountV1(b"\x41" * 32)
    b = UserAccountV1(b"\x42" * 32)
    with pytest.raises(ValidationFailure):
        engine.onboard_account(account20=a.address20, signature65=b"")
    with pytest.raises(ValidationFailure):
        engine.onboard_account(account20=a.address20, signature65=b.sign_onboarding(engine.domain()))
    assert not engine.is_onboarded(a.address20)


def test_account_cannot_encrypt_before_onboarding() -> None:
    engine, _ = _setup()
    with pytest.raises(AccountError):
        UserAccountV1(b"\x41" * 32).encrypt_value(1, 32, engine.domain())


def test_validate_native_ticket_roundtrip() -> None:
    engine, core = _setup()
    acct = _onboarded(engine)
    for bits in (8, 16, 32, 64):
        ops = core.for_width(bits)
        t = acct.encrypt_value(-5, bits, engine.domain())
        assert isinstance(t, InputTicketV1)
        assert ops.decrypt(ops.validate(t)) == -5


def test_validate_composite_ticket_roundtrip() -> None:
    engine, core = _setup()
    acct = _onboarded(engine)
    t128 = acct.encrypt_value(-(1 << 100) - 3, 128, engine.domain())
    assert isinstance(t128, CompositeInputTicketV1) and t128.bits == 128
    assert core.i128.decrypt(core.i128.validate(t128)) == -(1 << 100) - 3
    t256 = acct.encrypt_value((1 << 254) + 17, 256, engine.domain())
    assert isinstance(t256.high, CompositeInputTicketV1)
    assert isinstance(t256.ciphertext, CompositeCiphertextV1)
    assert core.i256.decrypt(core.i256.validate(t256)) == (1 << 254) + 17


def test_validate_fails_closed() -> None:
    engine, core = _setup()
    acct = _onboarded(engine)
    stranger = UserAccountV1(b"\x42" * 32)
    t = acct.encrypt_value(7, 32, engine.domain())
    before = engine.handle_count()

    # Signed by an account that never onboarded.
    digest = InputTicketCommitV1(width=32, ciphertext_blob=t.ciphertext.blob).digest32(domain=engine.domain())
    foreign = InputTicketV1(ciphertext=t.ciphertext, signature=secp256k1_sign_hash(stranger.privkey32, digest))
    with pytest.raises(ValidationFailure):
        core.i32.validate(foreign)

    # Tampered payload re-signed by the owner: signature passes, authentication does not.
    blob = bytearray(t.ciphertext.blob)
    blob[17] ^= 0x80
    bad_ct = CiphertextV1(bits=32, blob=bytes(blob))
    digest = InputTicketCommitV1(width=32, ciphertext_blob=bad_ct.blob).digest32(domain=engine.domain())
    with pytest.raises(CiphertextError):
        core.i32.validate(InputTicketV1(ciphertext=bad_ct, signature=secp256k1_sign_hash(acct.privkey32, digest)))

    # Wrong width.
    with pytest.raises(ValidationFailure):
        core.i64.validate(t)
    with pytest.raises(ValidationFailure):
        core.i128.validate(t)

    # Empty signature.
    with pytest.raises(ValidationFailure):
        core.i32.validate(InputTicketV1(ciphertext=t.ciphertext, signature=b""))

    assert engine.handle_count() == before


def test_composite_validate_rolls_back_accepted_limbs() -> None:
    engine, core = _setup()
    acct = _onboarded(engine)
    t128 = acct.encrypt_value(-9, 128, engine.domain())
    t256 = acct.encrypt_value(1 << 200, 256, engine.domain())
    before = engine.handle_count()

    # High limb is valid, low limb is unsigned.
    bad128 = CompositeInputTicketV1(high=t128.high, low=InputTicketV1(ciphertext=t128.low.ciphertext, signature=b""))
    with pytest.raises(ValidationFailure):
        core.i128.validate(bad128)
    assert engine.handle_count() == before

    # Both 64-bit limbs of the high half pass before the last one fails.
    low = t256.low
    bad256 = CompositeInputTicketV1(
        high=t256.high,
        low=CompositeInputTicketV1(high=low.high, low=InputTicketV1(ciphertext=low.low.ciphertext, signature=b"")),
    )
    with pytest.raises(ValidationFailure):
        core.i256.validate(bad256)
    assert engine.handle_count() == before

    # Composite onboard of a user ciphertext fails on the low limb only after the high one.
    sys_ct = core.i128.offboard(core.i128.set_public(3))
    mixed = CompositeCiphertextV1(bits=128, high=sys_ct.high, low=t128.low.ciphertext)
    before = engine.handle_count()
    with pytest.raises(CiphertextError):
        core.i128.onboard(mixed)
    assert engine.handle_count() == before
    assert engine.handle_count() == before


def test_ticket_for_one_engine_does_not_validate_on_another() -> None:
    e1, _ = _setup(seed=3)
    e2, core2 = _setup(seed=4)
    acct = _onboarded(e1)
    t = acct.encrypt_value(1, 16, e1.domain())
    with pytest.raises(ValidationFailure):
        core2.i16.validate(t)


def test_offboard_onboard_roundtrip() -> None:
    engine, core = _setup()
    for bits, v in ((16, -1234), (64, -(1 << 62)), (128, -(1 << 120)), (256, (1 << 200) - 9)):
        ops = core.for_width(bits)
        ct = ops.offboard(ops.set_public(v))
        assert ops.decrypt(ops.onboard(ct)) == v


def test_offboard_to_user_decrypts_with_recipient_key() -> None:
    engine, core = _setup()
    acct = _onboarded(engine)
    for bits, v in ((8, -42), (64, -42), (128, -(1 << 90)), (256, -(1 << 250))):
        ops = core.for_width(bits)
        ct = ops.offboard_to_user(ops.set_public(v), acct.address20)
        assert acct.decrypt_value(ct) == v
    ct = core.i8.offboard_to_user(core.i8.set_public(-1), acct.address20)
    assert acct.decrypt_value(ct, signed=False) == 0xFF


def test_offboard_to_user_unknown_recipient() -> None:
    _, core = _setup()
    with pytest.raises(UnknownAccountError):
        core.i32.offboard_to_user(core.i32.set_public(1), b"\x99" * 20)


def test_offboard_combined_bundle() -> None:
    engine, core = _setup()
    acct = _onboarded(engine)
    for bits in (32, 128):
        ops = core.for_width(bits)
        bundle = ops.offboard_combined(ops.set_public(-77), acct.address20)
        assert isinstance(bundle, OutputBundleV1)
        assert acct.decrypt_value(bundle.user_ciphertext) == -77
        assert ops.decrypt(ops.onboard(bundle.ciphertext)) == -77


def test_system_ciphertext_is_not_a_user_ciphertext() -> None:
    engine, core = _setup()
    acct = _onboarded(engine)
    ct = core.i32.offboard(core.i32.set_public(5))
    with pytest.raises(CiphertextError):
        acct.decrypt_value(ct)


def test_key_file_roundtrip_and_mode(tmp_path) -> None:
    p = tmp_path / "keys" / "user.hex"
    a = UserAccountV1.load_or_create(str(p))
    assert p.exists()
    assert stat.S_IMODE(os.stat(p).st_mode) == 0o600
    assert p.read_text(encoding="utf-8").startswith("0x")
    b = UserAccountV1.load_or_create(str(p))
    assert a.address20 == b.address20
