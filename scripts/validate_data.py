#!/usr/bin/env python3
"""
Validate the generated occupation database and title index before publishing.

Checks every occupation record, then that every code the title index
references exists and carries wage data.

Usage:
    python scripts/validate_data.py --data-dir data
"""

import argparse
from pathlib import Path
import sys

# Add parent directory to path for imports
sys.path.insert(0, str(Path(__file__).parent.parent))

from jobeval.config import Settings
from jobeval.etl.integrate import validate_title_index
from jobeval.schema import validate_occupation_record
from jobeval.storage import load_json


def validate(occupations_path: Path, index_path: Path) -> bool:
    print(f"Loading occupations from {occupations_path}...")
    database = load_json(occupations_path, default={}) or {}
    occupations = database.get("occupations", database)
    if not occupations:
        print("  No occupations found")
        return False
    print(f"  {len(occupations)} occupations")

    record_errors = []
    for code, data in occupations.items():
        record_errors.extend(validate_occupation_record(code, data))

    print(f"\nLoading title index from {index_path}...")
    index = load_json(index_path, default={}) or {}
    print(f"  {len(index)} keys")
    index_errors = validate_title_index(index, occupations)

    for label, errors in (("Occupation records", record_errors), ("Title index", index_errors)):
        if errors:
            print(f"\n{label}: {len(errors)} problems")
            for e in errors[:20]:
                print(f"  - {e}")
            if len(errors) > 20:
                print(f"  ... and {len(errors) - 20} more")
        else:
            print(f"\n{label}: OK")

    return not record_errors and not index_errors


def main():
    parser = argparse.ArgumentParser(description="Validate generated occupation data")
    parser.add_argument("--data-dir", default="data", help="Data directory (default: data)")
    args = parser.parse_args()

    settings = Settings(data_dir=Path(args.data_dir))
    ok = validate(settings.occupations_path, settings.title_index_path)
    sys.exit(0 if ok else 1)


if __name__ == "__main__":
    main()
