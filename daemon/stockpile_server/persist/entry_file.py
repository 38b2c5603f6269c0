"""
On-disk entry file format.

The database file is plain text, one Entry wire form per line, with no
header and no trailer:

    3|0|fookitchen
    4|1|bartable

Invariants:
    - Line order is Database order
    - Writes replace the whole file atomically (temp file + os.replace)
    - Unparseable lines are skipped on read and reported to the caller

How to change safely:
    - Never add a header line; older servers would log it as a bad entry
    - Keep reads tolerant; a single bad line must not block startup
"""

from __future__ import annotations

import logging
import os
import tempfile
from dataclasses import dataclass, field
from pathlib import Path
from typing import Iterable, List, Tuple

from ..errors import BadEntryEncoding
from ..inventory import Entry

logger = logging.getLogger(__name__)


@dataclass
class LoadResult:
    """Result of reading an entry file.

    Attributes:
        entries: Parsed entries in file order
        bad_lines: (line_number, text, reason) for each skipped line
        created: Whether the file did not exist and was created empty
    """

    entries: List[Entry] = field(default_factory=list)
    bad_lines: List[Tuple[int, str, str]] = field(default_factory=list)
    created: bool = False


def read_entry_file(path: str | Path, encoding: str = "utf-8") -> LoadResult:
    """Read an entry file, creating it empty if it does not exist.

    Args:
        path: File path
        encoding: Text encoding of the file

    Returns:
        LoadResult with parsed entries and skipped lines

    Raises:
        OSError: If the file cannot be created or read
    """
    path = Path(path)
    result = LoadResult()

    if not path.exists():
        path.parent.mkdir(parents=True, exist_ok=True)
        path.touch()
        result.created = True
        return result

    with open(path, encoding=encoding, newline="\n") as f:
        for lineno, raw in enumerate(f, start=1):
            text = raw.rstrip("\r\n")
            try:
                result.entries.append(Entry.from_wire(text))
            except BadEntryEncoding as e:
                result.bad_lines.append((lineno, text, e.message))

    return result


def write_entry_file(
    path: str | Path,
    entries: Iterable[Entry],
    encoding: str = "utf-8",
) -> int:
    """Atomically rewrite an entry file.

    The entries are written to a temporary file in the target directory,
    flushed and fsynced, then renamed over the target.

    Args:
        path: Target file path
        entries: Entries in Database order
        encoding: Text encoding of the file

    Returns:
        Number of entries written

    Raises:
        OSError: If the write or rename fails (the target is left untouched)
    """
    path = Path(path)
    directory = path.parent if str(path.parent) else Path(".")
    fd, tmp_name = tempfile.mkstemp(prefix=f".{path.name}.", suffix=".tmp", dir=directory)

    count = 0
    try:
        with os.fdopen(fd, "w", encoding=encoding, newline="\n") as f:
            for entry in entries:
                f.write(entry.to_wire())
                f.write("\n")
                count += 1
            f.flush()
            os.fsync(f.fileno())
        os.replace(tmp_name, path)
    except BaseException:
        try:
            os.unlink(tmp_name)
        except OSError:
            logger.debug(f"Could not remove temp file {tmp_name}")
        raise

    return count
