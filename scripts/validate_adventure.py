"""
Validate an adventure JSON file before playing it.

Usage:
    python scripts/validate_adventure.py adventures/sample_adventure.json
    python scripts/validate_adventure.py my_adventure.json --sanitize fixed.json
"""

import os
import sys
import json
import argparse

sys.path.append(os.path.abspath(os.path.join(os.path.dirname(__file__), '..')))

from tools.adventure_validator import format_validation_errors, sanitize_adventure, validate_adventure


def main():
    parser = argparse.ArgumentParser(description="Check an adventure document for schema and reference errors.")
    parser.add_argument("path", help="Adventure JSON file")
    parser.add_argument("--sanitize", metavar="OUT", help="Write the sanitized document to OUT")
    args = parser.parse_args()

    with open(args.path, "r", encoding="utf-8") as f:
        raw = json.load(f)

    cleaned, warnings = sanitize_adventure(raw)
    for warning in warnings:
        print(f"warning: {warning}")

    report = validate_adventure(cleaned)
    if not report.valid:
        print(f"{args.path}: {len(report.errors)} error(s)")
        print(format_validation_errors(report.errors))
        sys.exit(1)

    if args.sanitize:
        with open(args.sanitize, "w", encoding="utf-8") as f:
            json.dump(cleaned, f, ensure_ascii=False, indent=2)
        print(f"Sanitized adventure written to {args.sanitize}")

    print(f"{args.path}: OK ({len(cleaned.get('locations', []))} locations)")


if __name__ == "__main__":
    main()
