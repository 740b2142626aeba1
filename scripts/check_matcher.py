#!/usr/bin/env python3
"""
Spot-check the occupation matcher against known job titles.

Usage:
    python scripts/check_matcher.py --data-dir data
"""

import argparse
from pathlib import Path
import sys

# Add parent directory to path for imports
sys.path.insert(0, str(Path(__file__).parent.parent))

from jobeval.config import Settings
from jobeval.matcher import OccupationMatcher

# (input, expected top title); None means any match is acceptable
CASES = [
    ("Software Developers", "Software Developers"),
    ("Accountants and Auditors", "Accountants and Auditors"),
    ("Software Engineer", "Software Developers"),
    ("Developer", "Software Developers"),
    ("QA Tester", "Software Quality Assurance Analysts and Testers"),
    ("HR Manager", "Human Resources Managers"),
    ("Marketing", "Marketing Managers"),
    ("Sales", "Sales Managers"),
    ("Engineer", None),
    ("Sofware Developer", "Software Developers"),
    ("Accountant", "Accountants and Auditors"),
    ("Graphic Design", "Graphic Designers"),
    ("Full Stack Developer", "Software Developers"),
]


def run(matcher: OccupationMatcher) -> int:
    passed = 0
    for query, expected in CASES:
        results = matcher.match(query, max_results=3)
        top = results[0] if results else None

        if expected is None:
            ok = top is not None
        else:
            ok = top is not None and top.title == expected

        mark = "PASS" if ok else "FAIL"
        found = f"{top.title} ({top.confidence:.2f}, {top.match_type})" if top else "no match"
        print(f"[{mark}] {query!r:28} -> {found}")
        if not ok and expected:
            print(f"        expected: {expected}")
        passed += ok

    print(f"\n{passed}/{len(CASES)} passed")
    return len(CASES) - passed


def main():
    parser = argparse.ArgumentParser(description="Spot-check occupation matching")
    parser.add_argument("--data-dir", default="data", help="Data directory (default: data)")
    args = parser.parse_args()

    settings = Settings(data_dir=Path(args.data_dir))
    matcher = OccupationMatcher.from_files(settings.occupations_path, settings.title_index_path)
    if not matcher.occupations:
        print(f"No occupation data at {settings.occupations_path}")
        sys.exit(1)

    failures = run(matcher)
    sys.exit(1 if failures else 0)


if __name__ == "__main__":
    main()
