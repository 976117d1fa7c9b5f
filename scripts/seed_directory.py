#!/usr/bin/env python3
"""
Directory seeding utility.
Creates the schema and loads people and advisor rosters, either the built-in
demo set or a JSON file of the form:

    {"people": [{"id": ..., "name": ..., "role": ..., "external_id": ...}],
     "rosters": {"<advisor id>": ["<requester id>", ...]}}
"""

import argparse
import json
import sys
from pathlib import Path

sys.path.insert(0, str(Path(__file__).parent.parent))

from gatepass.core import config, dao
from gatepass.core.db import init_db
from gatepass.core.schema import Person, Role

DEMO_DIRECTORY = {
    "people": [
        {"id": "student-1", "name": "John Student", "role": "requester", "external_id": "STU001"},
        {"id": "advisor-1", "name": "Dr. Smith Advisor", "role": "advisor"},
        {"id": "hod-1", "name": "Prof. Johnson HOD", "role": "department_head"},
        {"id": "warden-1", "name": "Mr. Wilson Warden", "role": "warden"},
        {"id": "guard-1", "name": "Security Guard", "role": "gate_staff"},
    ],
    "rosters": {"advisor-1": ["student-1"]},
}


def load_directory(directory: dict) -> int:
    """Upsert people and roster entries. Returns the number of people written."""
    people = directory.get("people", [])
    for entry in people:
        dao.upsert_person(Person(
            id=entry["id"],
            name=entry["name"],
            role=Role(entry["role"]),
            external_id=entry.get("external_id"),
        ))
    for advisor_id, requester_ids in directory.get("rosters", {}).items():
        dao.assign_to_roster(advisor_id, requester_ids)
    return len(people)


def main():
    parser = argparse.ArgumentParser(description="Seed the gate pass directory")
    parser.add_argument("--file", help="JSON file with people and rosters (default: demo set)")
    args = parser.parse_args()

    try:
        directory = DEMO_DIRECTORY
        if args.file:
            directory = json.loads(Path(args.file).read_text())

        init_db()
        count = load_directory(directory)
        print(f"Seeded {count} people into {config.DB_PATH}")
        for advisor_id, requester_ids in directory.get("rosters", {}).items():
            print(f"  roster {advisor_id}: {', '.join(requester_ids)}")
        return 0

    except (OSError, json.JSONDecodeError, KeyError, ValueError) as e:
        print(f"ERROR: Seeding failed: {e}")
        return 1


if __name__ == "__main__":
    sys.exit(main())
