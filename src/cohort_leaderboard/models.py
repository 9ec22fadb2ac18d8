from decimal import Decimal
from typing import Any

from pydantic import AliasChoices, BaseModel, Field, field_validator

from .storage.base import StudentRecord, TermScore


class TermScoreImport(BaseModel):
    """One term's score as found in a student export"""

    term: int = Field(
        validation_alias=AliasChoices("term", "semester"),
        ge=1,
        description="Term (semester) number",
    )
    score: Decimal = Field(
        validation_alias=AliasChoices("score", "sgpa"),
        ge=0,
        max_digits=5,
        decimal_places=2,
        description="Score obtained in the term",
    )


class StudentImport(BaseModel):
    """A student record as found in a JSON export"""

    seat_number: str = Field(min_length=1, description="Unique seat/enrollment number")
    name: str = Field(min_length=1, description="Display name")
    admission_year: int = Field(description="Admission cohort year")
    terms: list[TermScoreImport] = Field(
        default_factory=list,
        validation_alias=AliasChoices("terms", "sgpa_list"),
        description="Term scores in the order they were recorded",
    )

    @field_validator("seat_number", "name", mode="before")
    @classmethod
    def strip_text(cls, value: Any) -> Any:
        if isinstance(value, (int, float)) and not isinstance(value, bool):
            value = str(value)
        return value.strip() if isinstance(value, str) else value

    @field_validator("terms", mode="before")
    @classmethod
    def wrap_single_entry(cls, value: Any) -> Any:
        # Some exports collapse a one-entry list into a bare object.
        if isinstance(value, dict):
            return [value]
        return value

    def to_record(self) -> StudentRecord:
        return StudentRecord(
            seat_number=self.seat_number,
            name=self.name,
            admission_year=self.admission_year,
            terms=tuple(TermScore(term=item.term, score=item.score) for item in self.terms),
        )


class StudentExport(BaseModel):
    """Top-level export: either a bare list or {"students": [...]}"""

    students: list[StudentImport]
