from __future__ import annotations

import argparse
import json
import sys

from .account import UserAccountV1
from .config import CoreConfigV1
from .core import SignedCoreV1
from .engine import LocalRSSEngineV1
from .types import BOOL_BITS, SIGNED_WIDTHS, WIDTHS
from .unsigned import UnsignedWordOps


BINARY_CMDS = ("add", "sub", "mul", "div", "and", "or", "xor", "eq", "ne", "gt", "lt", "ge", "le")
COMPARE_CMDS = ("eq", "ne", "gt", "lt", "ge", "le")
SHIFT_CMDS = ("shl", "shr")
UNARY_CMDS = ("neg", "not")


def _dumps(obj) -> str:
    return json.dumps(obj, sort_keys=True, separators=(",", ":"))


def _cmd_widths(args: argparse.Namespace) -> int:
    print(_dumps([WIDTHS[b].to_json_obj() for b in SIGNED_WIDTHS]))
    return 0


def _cmd_eval(args: argparse.Namespace) -> int:
    base = CoreConfigV1.from_env()
    cfg = CoreConfigV1(
        log_level=str(args.log_level) if args.log_level else base.log_level,
        legacy_native_div=(str(args.legacy_native_div) == "true") if args.legacy_native_div else base.legacy_native_div,
        chain_id=base.chain_id,
        seed=int(args.seed) if args.seed is not None else base.seed,
    )
    engine = LocalRSSEngineV1(config=cfg)
    core = SignedCoreV1(engine, cfg)
    ops = core.for_width(int(args.bits))
    op = str(args.op)

    a = ops.set_public(int(args.a, 0))
    if op in BINARY_CMDS:
        if args.b is None:
            raise SystemExit(f"--b is required for {op}")
        b = ops.set_public(int(args.b, 0))
    elif op in SHIFT_CMDS and args.n is None:
        raise SystemExit(f"--n is required for {op}")

    before = len(engine.reveal_log)
    if op in BINARY_CMDS:
        fn = getattr(ops, op + "_" if op in ("and", "or") else op)
        out = fn(a, b)
    elif op in SHIFT_CMDS:
        out = getattr(ops, op)(a, int(args.n))
    elif op == "neg":
        out = ops.neg(a)
    else:
        out = ops.not_(a)
    reveals = len(engine.reveal_log) - before

    if op in COMPARE_CMDS:
        result = bool(UnsignedWordOps(engine, BOOL_BITS).decrypt(out))
    else:
        result = ops.decrypt(out)
    rec = {
        "bits": int(args.bits),
        "op": op,
        "a": int(args.a, 0),
        "b": int(args.b, 0) if args.b is not None else None,
        "n": int(args.n) if args.n is not None else None,
        "result": result,
        "reveals": int(reveals),
        "reveal_root": "0x" + engine.reveal_log.root().hex(),
    }
    print(_dumps(rec))
    return 0


def _cmd_account_info(args: argparse.Namespace) -> int:
    acct = UserAccountV1.load_or_create(str(args.key_path))
    print(_dumps(acct.to_json_obj()))
    return 0


def main(argv: list[str] | None = None) -> int:
    p = argparse.ArgumentParser(prog="mpc-sint")
    sub = p.add_subparsers(dest="cmd", required=True)

    w = sub.add_parser("widths", help="Print the signed width table as JSON")
    w.set_defaults(func=_cmd_widths)

    e = sub.add_parser("eval", help="Run one signed op on a local engine and print the result as JSON")
    e.add_argument("--bits", required=True, type=int, choices=list(SIGNED_WIDTHS))
    e.add_argument("--op", required=True, choices=list(BINARY_CMDS + SHIFT_CMDS + UNARY_CMDS))
    e.add_argument("--a", required=True, help="Left operand (decimal or 0x hex); pass negative hex as --a=-0x10")
    e.add_argument("--b", default=None, help="Right operand for binary ops; pass negative hex as --b=-0x10")
    e.add_argument("--n", default=None, type=int, help="Shift amount for shl/shr")
    e.add_argument("--seed", default=None, type=int, help="Share generator seed (default: MPC_SINT_SEED)")
    e.add_argument("--legacy-native-div", default=None, choices=["true", "false"])
    e.add_argument("--log-level", default=None, choices=["quiet", "info", "debug", "trace"])
    e.set_defaults(func=_cmd_eval)

    ai = sub.add_parser("account-info", help="Create/load a user key file and print address/pubkey JSON")
    ai.add_argument("--key-path", default="~/.mpc_sint/user_privkey.hex")
    ai.set_defaults(func=_cmd_account_info)

    args = p.parse_args(argv)
    return int(args.func(args))


if __name__ == "__main__":
    sys.exit(main())
