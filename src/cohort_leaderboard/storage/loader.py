"""
Load student records from JSON exports.

Accepted shape (one object per student)::

    {"seat_number": "S001", "name": "Asha", "admission_year": 2022,
     "sgpa_list": [{"semester": 1, "sgpa": 8.5}, ...]}

``terms: [{"term": 1, "score": 8.5}]`` is accepted in place of ``sgpa_list``.
"""

from __future__ import annotations

import json
from pathlib import Path
from typing import Any

from ..models import StudentExport, StudentImport
from .base import StudentRecord


def record_from_dict(data: dict[str, Any]) -> StudentRecord:
    """Validate a raw JSON object into a ``StudentRecord``.

    Raises ``pydantic.ValidationError`` (a ``ValueError``) on malformed input.
    """
    return StudentImport.model_validate(data).to_record()


def record_to_dict(record: StudentRecord) -> dict[str, Any]:
    return {
        "seat_number": record.seat_number,
        "name": record.name,
        "admission_year": record.admission_year,
        "sgpa_list": [
            {"semester": entry.term, "sgpa": float(entry.score)}
            for entry in record.terms
        ],
    }


def load_records(path: str | Path) -> list[StudentRecord]:
    """Read a JSON array (or ``{"students": [...]}``) of student records."""
    payload = json.loads(Path(path).read_text(encoding="utf-8"))
    if isinstance(payload, list):
        payload = {"students": payload}
    export = StudentExport.model_validate(payload)
    return [student.to_record() for student in export.students]
