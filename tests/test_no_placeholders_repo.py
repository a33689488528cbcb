from __future__ import annotations

import re
from pathlib import Path
from typing import Iterable, List, Tuple


_DENY_DIRS = {".git", "__pycache__", ".venv", "venv", "build", "dist", ".pytest_cache"}

# Tokens are assembled so this file does not match itself.
_TOKENS = [
    r"\b" + ("TO" + "DO") + r"\b",
    r"\b" + ("FIX" + "ME") + r"\b",
    r"\b" + ("TB" + "D") + r"\b",
    ("Not" + "ImplementedError"),
    r"\b" + ("pla" + "ceholder") + r"\b",
    r"\b" + ("st" + "ub") + r"\b",
    r"\b" + ("for " + "now") + r"\b",
]
_FORBIDDEN = re.compile("(" + "|".join(_TOKENS) + ")", re.IGNORECASE)


def _iter_files(root: Path) -> Iterable[Path]:
    for p in sorted(root.rglob("*.py")):
        if any(part in _DENY_DIRS for part in p.parts):
            continue
        yield p


def test_repo_has_no_placeholder_markers() -> None:
    repo_root = Path(__file__).resolve().parents[1]
    hits: List[Tuple[str, int, str]] = []
    for t in (repo_root / "mpc_sint", repo_root / "tests"):
        for p in _iter_files(t):
            for i, line in enumerate(p.read_text(encoding="utf-8").splitlines(), start=1):
                if _FORBIDDEN.search(line):
                    hits.append((str(p), i, line.strip()))
    assert not hits, "Found disallowed markers:\n" + "\n".join(f"- {p}:{ln}: {txt}" for (p, ln, txt) in hits[:50])
