from __future__ import annotations

import json
import os
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, Optional


def _env_bool(name: str, default: str) -> bool:
    return str(os.environ.get(name, default)).strip().lower() in ("1", "true", "yes", "on")


DEFAULT_LOG_LEVEL = str(os.environ.get("MPC_SINT_LOG_LEVEL", "quiet"))
# Raw unsigned division for int8/int16/int32, as the first releases shipped.
DEFAULT_LEGACY_NATIVE_DIV = _env_bool("MPC_SINT_LEGACY_NATIVE_DIV", "false")
DEFAULT_CHAIN_ID = int(os.environ.get("MPC_SINT_CHAIN_ID", "31337"))
DEFAULT_SEED: Optional[int] = int(os.environ["MPC_SINT_SEED"]) if os.environ.get("MPC_SINT_SEED") else None

LEGACY_DIV_WIDTHS = (8, 16, 32)


@dataclass(frozen=True)
class CoreConfigV1:
    log_level: str = DEFAULT_LOG_LEVEL
    legacy_native_div: bool = DEFAULT_LEGACY_NATIVE_DIV
    chain_id: int = DEFAULT_CHAIN_ID
    seed: Optional[int] = DEFAULT_SEED

    def __post_init__(self) -> None:
        if int(self.chain_id) < 0:
            raise ValueError("chain_id must be >= 0")
        if self.seed is not None and int(self.seed) < 0:
            raise ValueError("seed must be >= 0")

    @staticmethod
    def from_env() -> "CoreConfigV1":
        return CoreConfigV1(
            log_level=str(os.environ.get("MPC_SINT_LOG_LEVEL", "quiet")),
            legacy_native_div=_env_bool("MPC_SINT_LEGACY_NATIVE_DIV", "false"),
            chain_id=int(os.environ.get("MPC_SINT_CHAIN_ID", "31337")),
            seed=int(os.environ["MPC_SINT_SEED"]) if os.environ.get("MPC_SINT_SEED") else None,
        )

    @staticmethod
    def from_json_obj(obj: Dict[str, Any]) -> "CoreConfigV1":
        known = {"log_level", "legacy_native_div", "chain_id", "seed"}
        extra = set(obj) - known
        if extra:
            raise ValueError(f"unknown config keys: {sorted(extra)}")
        base = CoreConfigV1()
        seed = obj.get("seed", base.seed)
        legacy = obj.get("legacy_native_div", base.legacy_native_div)
        if not isinstance(legacy, bool):
            raise ValueError("legacy_native_div must be a JSON boolean")
        return CoreConfigV1(
            log_level=str(obj.get("log_level", base.log_level)),
            legacy_native_div=legacy,
            chain_id=int(obj.get("chain_id", base.chain_id)),
            seed=int(seed) if seed is not None else None,
        )

    @staticmethod
    def from_json(path: str) -> "CoreConfigV1":
        obj = json.loads(Path(str(path)).expanduser().read_text(encoding="utf-8"))
        if not isinstance(obj, dict):
            raise ValueError("config JSON must be an object")
        return CoreConfigV1.from_json_obj(obj)

    def div_is_legacy(self, bits: int) -> bool:
        return bool(self.legacy_native_div) and int(bits) in LEGACY_DIV_WIDTHS
