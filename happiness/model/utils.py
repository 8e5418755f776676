# happiness/model/utils.py
"""Utilities for writing report tables, text and provenance snapshots.

Designed for reproducibility: deterministic filenames, config snapshot with
input checksums, and one log line per written artifact.

Usage examples:
    from happiness.model.utils import save_frame, save_json, save_config_snapshot, now_iso
"""
from __future__ import annotations
from pathlib import Path
import json
import hashlib
import pandas as pd
import logging
from datetime import datetime, timezone
from typing import Any, Dict, Iterable, Optional

# --- logging setup (idempotent) ---
LOG = logging.getLogger("happiness.model.utils")
if not LOG.handlers:
    ch = logging.StreamHandler()
    ch.setFormatter(logging.Formatter("%(asctime)s %(levelname)s %(message)s"))
    LOG.addHandler(ch)
LOG.setLevel(logging.INFO)


def ensure_parent(path: Path) -> Path:
    """Create parent directory for `path` if missing and return the Path (idempotent)."""
    p = Path(path)
    p.parent.mkdir(parents=True, exist_ok=True)
    return p


def save_json(obj: Any, out_path: Path) -> None:
    """Save JSON-serializable `obj` to out_path (pretty-printed)."""
    p = ensure_parent(out_path)
    with open(p, "w", encoding="utf8") as fh:
        json.dump(obj, fh, indent=2, ensure_ascii=False, default=str)
    LOG.info("Saved json -> %s", p)


def save_frame(df: pd.DataFrame, out_path: Path, index: bool = False) -> None:
    """Write a DataFrame as CSV (creates parent dir)."""
    p = ensure_parent(out_path)
    df.to_csv(p, index=index)
    LOG.info("Saved table -> %s (%d rows)", p, len(df))


def write_text(text: str, out_path: Path) -> None:
    """Write text to file (creates parent dir)."""
    p = ensure_parent(out_path)
    with open(p, "w", encoding="utf8") as fh:
        fh.write(text)
    LOG.info("Saved text -> %s", p)


def sha256sum(path: Path) -> str:
    """Return SHA256 hex digest of file at path."""
    h = hashlib.sha256()
    with open(path, "rb") as fh:
        for chunk in iter(lambda: fh.read(8192), b""):
            h.update(chunk)
    return h.hexdigest()


def _safe_sha256_of_file(p: Path) -> Optional[str]:
    """Return sha256 hex for existing file, or None if missing."""
    if not Path(p).exists():
        return None
    return sha256sum(Path(p))


def now_iso() -> str:
    """Return current UTC timestamp in ISO format with trailing 'Z'."""
    return datetime.now(timezone.utc).isoformat().replace("+00:00", "Z")


def save_config_snapshot(cfg: Dict[str, Any], out_path: Path, inputs: Iterable[Path] = ()) -> None:
    """Save a small reproducibility snapshot: timestamp, config and input checksums."""
    meta = {
        "saved_at": now_iso(),
        "config": cfg,
        "inputs": {str(p): _safe_sha256_of_file(Path(p)) for p in inputs},
    }
    save_json(meta, out_path)


def list_dir(path: Path) -> Dict[str, int]:
    """Return a small map of filename -> size for files in a directory."""
    p = Path(path)
    out: Dict[str, int] = {}
    if not p.exists():
        return out
    for f in sorted(p.iterdir()):
        if f.is_file():
            out[f.name] = f.stat().st_size
    return out
