"""
Entry file CLI tool for Stockpile.

This tool inspects and seeds entry files while the server is stopped:
- check: Parse every line and report the ones the server would skip
- list: Print entries as tab-separated columns
- add: Append an entry

Usage:
    stockpile-db check entries.db
    stockpile-db list entries.db [--missing]
    stockpile-db add entries.db "drill" "garage shelf" [--missing]

Invariants:
    - check exits non-zero when any line fails to parse
    - add never rewrites existing lines

How to change safely:
    - Do not run add against a file a live server owns; the next flush
      overwrites it
    - Keep list output stable for shell pipelines
"""

from __future__ import annotations

import argparse
import logging
import sys
from pathlib import Path
from typing import List, Optional, TextIO

from ..errors import IOFault
from ..inventory import Entry
from ..persist import LoadResult, read_entry_file

logger = logging.getLogger(__name__)


class DbFileCLI:
    """Commands over one entry file.

    Example:
        >>> cli = DbFileCLI("entries.db")
        >>> cli.check(sys.stdout)
        0
    """

    def __init__(self, path: str | Path, encoding: str = "utf-8") -> None:
        self.path = Path(path)
        self.encoding = encoding

    def check(self, out: TextIO) -> int:
        """Report unparseable lines.

        Returns:
            Exit code (0 when every line parses)
        """
        if not self.path.exists():
            print(f"{self.path}: no such file", file=out)
            return 1

        result = self._read()
        for lineno, text, reason in result.bad_lines:
            print(f"{self.path}:{lineno}: {reason}: {text!r}", file=out)

        print(
            f"{self.path}: {len(result.entries)} entries, {len(result.bad_lines)} bad lines",
            file=out,
        )
        return 1 if result.bad_lines else 0

    def list(self, out: TextIO, missing_only: bool = False) -> int:
        """Print name, location and flags for each entry."""
        if not self.path.exists():
            print(f"{self.path}: no such file", file=out)
            return 1

        for entry in self._read().entries:
            if missing_only and not entry.missing:
                continue
            print(f"{entry.name}\t{entry.location}\t{entry.flags:#x}", file=out)
        return 0

    def add(self, name: str, location: str, missing: bool = False) -> Entry:
        """Append an entry to the file, creating it if needed.

        Raises:
            ValueError: If name or location contains a newline
            IOFault: If the file cannot be written
        """
        entry = Entry(name, location).with_missing(missing)
        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            with open(self.path, "a", encoding=self.encoding, newline="\n") as f:
                f.write(entry.to_wire() + "\n")
        except OSError as e:
            raise IOFault(f"Cannot append to {self.path}: {e}", path=str(self.path)) from e
        logger.debug(f"Appended {entry} to {self.path}")
        return entry

    def _read(self) -> LoadResult:
        try:
            return read_entry_file(self.path, self.encoding)
        except (OSError, UnicodeDecodeError) as e:
            raise IOFault(f"Cannot read {self.path}: {e}", path=str(self.path)) from e


def main(argv: Optional[List[str]] = None) -> None:
    """CLI entry point for the entry file tool."""
    parser = argparse.ArgumentParser(description="Stockpile entry file tool")
    parser.add_argument("--encoding", default="utf-8", help="File text encoding")
    subparsers = parser.add_subparsers(dest="command", required=True)

    # check command
    check_parser = subparsers.add_parser("check", help="Report lines the server would skip")
    check_parser.add_argument("path", help="Entry file")

    # list command
    list_parser = subparsers.add_parser("list", help="Print entries")
    list_parser.add_argument("path", help="Entry file")
    list_parser.add_argument("--missing", action="store_true", help="Only entries flagged missing")

    # add command
    add_parser = subparsers.add_parser("add", help="Append an entry")
    add_parser.add_argument("path", help="Entry file")
    add_parser.add_argument("name", help="Item name")
    add_parser.add_argument("location", help="Item location")
    add_parser.add_argument("--missing", action="store_true", help="Flag the item missing")

    args = parser.parse_args(argv)
    cli = DbFileCLI(args.path, encoding=args.encoding)

    try:
        if args.command == "check":
            sys.exit(cli.check(sys.stdout))

        elif args.command == "list":
            sys.exit(cli.list(sys.stdout, missing_only=args.missing))

        elif args.command == "add":
            try:
                entry = cli.add(args.name, args.location, missing=args.missing)
            except ValueError as e:
                print(f"Invalid entry: {e}", file=sys.stderr)
                sys.exit(1)
            print(entry.to_wire())

    except IOFault as e:
        print(f"Error: {e.message}", file=sys.stderr)
        sys.exit(1)


if __name__ == "__main__":
    main()
