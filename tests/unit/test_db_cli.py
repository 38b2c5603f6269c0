"""
Unit tests for the stockpile-db tool.
"""

import io

import pytest

from stockpile_server.errors import IOFault
from stockpile_server.inventory import Entry
from stockpile_server.persist import read_entry_file
from stockpile_server.tools.db_cli import DbFileCLI, main


@pytest.fixture
def seeded_path(db_path):
    with open(db_path, "w", encoding="utf-8") as f:
        f.write("5|0|drillgarage\nbroken line\n6|1|hammershed\n")
    return db_path


class TestDbFileCLI:
    """Tests for DbFileCLI commands."""

    def test_check_reports_bad_lines(self, seeded_path):
        out = io.StringIO()
        assert DbFileCLI(seeded_path).check(out) == 1

        report = out.getvalue()
        assert ":2:" in report
        assert "'broken line'" in report
        assert "2 entries, 1 bad lines" in report

    def test_check_clean_file(self, db_path):
        DbFileCLI(db_path).add("drill", "garage")
        out = io.StringIO()
        assert DbFileCLI(db_path).check(out) == 0

    def test_check_missing_file(self, db_path):
        out = io.StringIO()
        assert DbFileCLI(db_path).check(out) == 1
        assert "no such file" in out.getvalue()

    def test_list(self, seeded_path):
        out = io.StringIO()
        assert DbFileCLI(seeded_path).list(out) == 0
        assert out.getvalue().splitlines() == [
            "drill\tgarage\t0x0",
            "hammer\tshed\t0x1",
        ]

    def test_list_missing_only(self, seeded_path):
        out = io.StringIO()
        DbFileCLI(seeded_path).list(out, missing_only=True)
        assert out.getvalue().splitlines() == ["hammer\tshed\t0x1"]

    def test_add_to_directory_is_io_fault(self, temp_dir):
        with pytest.raises(IOFault) as exc_info:
            DbFileCLI(temp_dir).add("saw", "attic")
        assert exc_info.value.code == "IO_FAULT"

    def test_add_appends(self, seeded_path):
        entry = DbFileCLI(seeded_path).add("saw", "attic", missing=True)
        assert entry == Entry("saw", "attic", 1)
        assert read_entry_file(seeded_path).entries[-1] == entry


class TestMain:
    """Tests for the argparse entry point."""

    def test_check_exit_code(self, seeded_path, capsys):
        with pytest.raises(SystemExit) as exc_info:
            main(["check", seeded_path])
        assert exc_info.value.code == 1
        assert "bad lines" in capsys.readouterr().out

    def test_add_prints_wire_form(self, db_path, capsys):
        main(["add", db_path, "drill", "garage shelf"])
        assert capsys.readouterr().out.strip() == "5|0|drillgarage shelf"

        with pytest.raises(SystemExit) as exc_info:
            main(["list", db_path])
        assert exc_info.value.code == 0
        assert capsys.readouterr().out == "drill\tgarage shelf\t0x0\n"

    def test_add_rejects_newline(self, db_path, capsys):
        with pytest.raises(SystemExit) as exc_info:
            main(["add", db_path, "dr\nill", "garage"])
        assert exc_info.value.code == 1
        assert "Invalid entry" in capsys.readouterr().err

    def test_unreadable_path(self, temp_dir, capsys):
        with pytest.raises(SystemExit) as exc_info:
            main(["check", temp_dir])
        assert exc_info.value.code == 1
        assert "Cannot read" in capsys.readouterr().err

    def test_requires_command(self):
        with pytest.raises(SystemExit):
            main([])
