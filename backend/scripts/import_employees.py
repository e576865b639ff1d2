"""
Import employees from a CSV file.

Usage:
    python scripts/import_employees.py employees.csv

Rows are upserted by ssid, so the import can be re-run safely.
"""

import argparse
import asyncio
import sys

from compadvisor.api.deps import get_db_session
from compadvisor.core.logging_config import setup_logging
from compadvisor.services.employee_import import import_employees


async def _run(path: str) -> int:
    async with get_db_session() as db:
        report = await import_employees(db, path)

    print(f"Imported {len(report.imported)} employees")
    for row, message in report.errors:
        location = f"row {row}" if row else "save"
        print(f"  {location}: {message}", file=sys.stderr)
    return 0 if report.ok else 1


def main():
    parser = argparse.ArgumentParser(description="Upsert employees from a CSV file")
    parser.add_argument("csv_path", help="CSV with ssid,name,role,performance,experience,salary[,revenue]")
    args = parser.parse_args()

    setup_logging()
    sys.exit(asyncio.run(_run(args.csv_path)))


if __name__ == "__main__":
    main()
