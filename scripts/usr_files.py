#!/usr/bin/env python3
"""
Read/write helpers for .usr player files.

Player files are Windows-1252 text. Both directions are strict: a byte that
does not decode, or a character that does not encode, is an error rather than
a silent replacement.
"""
from __future__ import annotations

import os
import re
import shutil
import tempfile
from pathlib import Path

USR_ENCODING = "cp1252"
USR_SUFFIX = ".usr"
UNKNOWN_PLAYER = "Unknown"

NAME_PATTERN = re.compile(r'^\s*Name\s*=\s*"([^"]+)"', re.MULTILINE)
ID_PATTERN = re.compile(r"^\s*ID\s*=\s*([0-9]+)\s*$", re.MULTILINE)


def read_usr_text(path: Path) -> str:
    return Path(path).read_bytes().decode(USR_ENCODING)


def encode_usr_text(text: str) -> bytes:
    return text.encode(USR_ENCODING)


def write_usr_text(path: Path, text: str) -> None:
    """Encode ``text`` and replace ``path`` with it in a single rename.

    Encoding happens before anything touches the disk, and the data goes to a
    sibling temp file first, so a failure leaves the original file as it was.
    Symlinks are followed, and the replacement keeps the mode, owner and
    group of the file it replaces.
    """
    path = Path(path).resolve()
    payload = encode_usr_text(text)
    fd, tmp_name = tempfile.mkstemp(prefix=f".{path.name}.", suffix=".tmp", dir=path.parent)
    tmp_path = Path(tmp_name)
    try:
        with os.fdopen(fd, "wb") as handle:
            handle.write(payload)
        if path.exists():
            shutil.copymode(path, tmp_path)
            st = path.stat()
            tmp_st = tmp_path.stat()
            if (st.st_uid, st.st_gid) != (tmp_st.st_uid, tmp_st.st_gid):
                os.chown(tmp_path, st.st_uid, st.st_gid)
        os.replace(tmp_path, path)
    except BaseException:
        tmp_path.unlink(missing_ok=True)
        raise


def find_usr_files(root: Path, suffix: str = USR_SUFFIX) -> list[Path]:
    """Recursively collect player files; they live in two-digit bucket dirs."""
    root = Path(root)
    if not root.is_dir():
        raise FileNotFoundError(f"Directory not found: {root}")
    return sorted(p for p in root.rglob(f"*{suffix}") if p.is_file())


def extract_player_name(text: str, fallback: str = UNKNOWN_PLAYER) -> str:
    match = NAME_PATTERN.search(text)
    if match:
        return match.group(1)
    return fallback


def extract_player_id(text: str) -> int | None:
    match = ID_PATTERN.search(text)
    if match:
        return int(match.group(1))
    return None
