"""
Directory seeding script tests.
"""

import json
from unittest.mock import patch

from gatepass.core import dao
from gatepass.core.schema import Role
from scripts.seed_directory import DEMO_DIRECTORY, load_directory, main


def test_load_demo_directory(test_db):
    count = load_directory(DEMO_DIRECTORY)

    assert count == len(DEMO_DIRECTORY["people"])
    assert dao.get_person("guard-1").role == Role.GATE_STAFF
    assert dao.get_person("student-1").external_id == "STU001"
    assert dao.get_roster("advisor-1") == frozenset({"student-1"})


def test_main_loads_json_file(test_db, tmp_path):
    directory_file = tmp_path / "directory.json"
    directory_file.write_text(json.dumps({
        "people": [{"id": "w-2", "name": "Night Warden", "role": "warden"}],
    }))

    with patch("sys.argv", ["seed_directory.py", "--file", str(directory_file)]):
        assert main() == 0
    assert dao.get_person("w-2").name == "Night Warden"


def test_main_reports_bad_role(test_db, tmp_path, capsys):
    directory_file = tmp_path / "directory.json"
    directory_file.write_text(json.dumps({
        "people": [{"id": "x", "name": "X", "role": "principal"}],
    }))

    with patch("sys.argv", ["seed_directory.py", "--file", str(directory_file)]):
        assert main() == 1
    assert "Seeding failed" in capsys.readouterr().out
