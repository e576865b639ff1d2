"""
Employee CSV Import

Reads an onboarding CSV with pandas and upserts each row through
EmployeeStore. Expected columns (case-insensitive): ssid, name, role,
performance, experience, salary and optionally revenue.
"""

import logging
from dataclasses import dataclass, field
from typing import List, Tuple, Union
from pathlib import Path

import pandas as pd
from pydantic import ValidationError
from sqlalchemy.ext.asyncio import AsyncSession

from compadvisor.core.exceptions import CompensationError, InvalidEmployeeError
from compadvisor.schemas.employee import EmployeeCreate
from compadvisor.services.data.employee_store import EmployeeStore

logger = logging.getLogger(__name__)

REQUIRED_COLUMNS = ("ssid", "name", "role", "performance", "experience", "salary")


@dataclass
class ImportReport:
    imported: List[str] = field(default_factory=list)
    errors: List[Tuple[int, str]] = field(default_factory=list)  # (row number, message)

    @property
    def ok(self) -> bool:
        return not self.errors


def read_employee_csv(source: Union[str, Path]) -> Tuple[List[EmployeeCreate], List[Tuple[int, str]]]:
    """Parse the CSV into validated payloads; bad rows are reported, not raised"""
    # Everything as text so identifiers like "0042" keep their leading zeros
    df = pd.read_csv(source, dtype=str)
    df.columns = [str(c).strip().lower() for c in df.columns]

    missing = [c for c in REQUIRED_COLUMNS if c not in df.columns]
    if missing:
        raise InvalidEmployeeError(
            f"CSV is missing required columns: {', '.join(missing)}",
            details={"missing": missing},
        )

    if "revenue" not in df.columns:
        df["revenue"] = 0
    df["revenue"] = df["revenue"].fillna(0)

    payloads: List[EmployeeCreate] = []
    errors: List[Tuple[int, str]] = []
    # Row numbers are 1-based and skip the header line
    for row_number, row in enumerate(df.to_dict(orient="records"), start=2):
        record = {k: v for k, v in row.items() if k in REQUIRED_COLUMNS or k == "revenue"}
        for key in ("performance", "experience"):
            if isinstance(record.get(key), str):
                record[key] = record[key].strip().lower()
        try:
            payloads.append(EmployeeCreate.model_validate(record))
        except ValidationError as e:
            first = e.errors()[0]
            errors.append((row_number, f"{'.'.join(str(p) for p in first['loc'])}: {first['msg']}"))
    return payloads, errors


async def import_employees(db: AsyncSession, source: Union[str, Path]) -> ImportReport:
    payloads, errors = read_employee_csv(source)
    report = ImportReport(errors=list(errors))
    store = EmployeeStore(db)

    for payload in payloads:
        try:
            await store.upsert_employee(payload)
        except CompensationError as e:
            report.errors.append((0, f"{payload.ssid}: {e.message}"))
            continue
        report.imported.append(payload.ssid)

    logger.info(f"Imported {len(report.imported)} employees from {source} ({len(report.errors)} errors)")
    return report
