"""Helpers for resolving output, scratch and asset paths.

Every deck is written into an explicit ``output_dir``.  Scratch files (the
in-progress artifact) live in ``.deck_tmp`` inside that directory so the
final ``os.replace`` stays on one filesystem.  When the output directory
refuses the scratch dir (read-only share) a :pyfunc:`tempfile.mkdtemp`
directory is used instead and the writer copies across filesystems.
"""
from __future__ import annotations

import atexit
import errno
import shutil
import tempfile
from dataclasses import dataclass
from pathlib import Path
from typing import Tuple


__all__ = ["Workspace", "prepare_workspace", "resolve_asset"]

TMP_DIRNAME = ".deck_tmp"
REMOTE_PREFIXES = ("http://", "https://", "data:")


@dataclass(frozen=True)
class Workspace:
    output_dir: Path
    tmp_dir: Path
    tmp_in_output_dir: bool


def _make_scratch_dir(out_path: Path) -> Tuple[Path, bool]:
    scratch = out_path / TMP_DIRNAME
    try:
        scratch.mkdir(parents=True, exist_ok=True)
        return scratch, True
    except OSError as exc:
        if exc.errno not in (errno.EACCES, errno.EROFS):
            raise
    return Path(tempfile.mkdtemp(prefix="deckbuilder_tmp_")), False


def prepare_workspace(output_dir: str | Path, *, keep_tmp: bool = False) -> Workspace:
    """Create ``output_dir`` and a scratch directory for it.

    The scratch directory is removed at interpreter exit unless ``keep_tmp``
    is set; a fallback directory outside ``output_dir`` is always removed.
    """
    out_path = Path(output_dir).expanduser().resolve()
    out_path.mkdir(parents=True, exist_ok=True)

    tmp_path, inside = _make_scratch_dir(out_path)

    if not keep_tmp or not inside:
        atexit.register(shutil.rmtree, tmp_path, ignore_errors=True)

    return Workspace(output_dir=out_path, tmp_dir=tmp_path, tmp_in_output_dir=inside)


def resolve_asset(src: str, *, base_dir: Path) -> Tuple[str, str]:
    """Return ``(browser_src, absolute_path)`` for an image ``src``.

    Remote and data URIs pass through unchanged. ``file://`` URLs and
    relative paths (against *base_dir*) become absolute file paths.
    """
    if src.startswith(REMOTE_PREFIXES):
        return src, src

    local = Path(src[len("file://"):]) if src.startswith("file://") else Path(base_dir) / src
    abs_path = local.expanduser().resolve()
    return f"file://{abs_path}", str(abs_path)
