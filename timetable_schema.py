from __future__ import annotations

import json
from pathlib import Path
from typing import Any, Dict, List, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator, model_validator

WEEK_DAYS: List[str] = ["Monday", "Tuesday", "Wednesday", "Thursday", "Friday", "Saturday", "Sunday"]
MAX_DAYS = 7
MAX_PERIODS = 10
MAX_SUBJECTS = 5
NO_FACULTY = "Unassigned"
DEFAULT_MAX_ATTEMPTS = 10000
DEFAULT_SECTIONS: List[str] = ["Section A", "Section B"]


def _clean_unique_names(v: List[str], what: str) -> List[str]:
    if v is None:
        return []
    if not isinstance(v, list):
        raise ValueError("must be an array of strings")
    out: List[str] = []
    for x in v:
        if not isinstance(x, str) or not x.strip():
            raise ValueError(f"{what} must be non-empty strings")
        out.append(x.strip())
    if len({x.lower() for x in out}) != len(out):
        raise ValueError(f"{what} must be unique")
    return out


class Calendar(BaseModel):
    model_config = ConfigDict(extra="forbid")

    days: List[str] = Field(default_factory=lambda: WEEK_DAYS[:5])
    periods_per_day: int = 6

    @field_validator("days")
    @classmethod
    def _days_clean(cls, v: List[str]) -> List[str]:
        out = _clean_unique_names(v, "days")
        if not out or len(out) > MAX_DAYS:
            raise ValueError(f"must list between 1 and {MAX_DAYS} working days")
        return out

    @field_validator("periods_per_day")
    @classmethod
    def _periods_in_range(cls, v: int) -> int:
        if not isinstance(v, int) or v <= 0 or v > MAX_PERIODS:
            raise ValueError(f"must be an integer in [1,{MAX_PERIODS}]")
        return v

    @classmethod
    def for_working_days(cls, working_days: int, periods_per_day: int) -> "Calendar":
        """Calendar using the first ``working_days`` names of the week (Monday first)."""
        if not isinstance(working_days, int) or working_days < 1 or working_days > MAX_DAYS:
            raise ValueError(f"working days must be an integer in [1,{MAX_DAYS}]")
        return cls(days=WEEK_DAYS[:working_days], periods_per_day=periods_per_day)

    @property
    def working_days(self) -> int:
        return len(self.days)

    def day_index(self, name: str) -> Optional[int]:
        key = (name or "").strip().lower()
        for i, d in enumerate(self.days):
            if d.lower() == key:
                return i
        return None


class Subject(BaseModel):
    model_config = ConfigDict(extra="forbid")

    name: str
    sessions_per_week: int
    # Days (by calendar name, case-insensitive) on which the subject may never be scheduled.
    excluded_days: List[str] = Field(default_factory=list)
    # Missing/blank faculty means "no faculty constraint".
    faculty: str = NO_FACULTY

    @field_validator("name")
    @classmethod
    def _non_empty_str(cls, v: str) -> str:
        v = (v or "").strip()
        if not v:
            raise ValueError("must be a non-empty string")
        return v

    @field_validator("sessions_per_week")
    @classmethod
    def _spw_positive(cls, v: int) -> int:
        if not isinstance(v, int) or v <= 0:
            raise ValueError("must be a positive integer")
        return v

    @field_validator("faculty", mode="before")
    @classmethod
    def _faculty_default(cls, v: Optional[str]) -> str:
        if v is None:
            return NO_FACULTY
        if not isinstance(v, str):
            raise ValueError("must be a string")
        return v.strip() or NO_FACULTY

    @field_validator("excluded_days")
    @classmethod
    def _excluded_days_clean(cls, v: List[str]) -> List[str]:
        if v is None:
            return []
        if not isinstance(v, list):
            raise ValueError("must be an array of day names")
        out: List[str] = []
        seen = set()
        for d in v:
            if not isinstance(d, str) or not d.strip():
                raise ValueError("excluded days must be non-empty strings")
            d = d.strip()
            # de-dupe (case-insensitive), preserve order
            if d.lower() in seen:
                continue
            seen.add(d.lower())
            out.append(d)
        return out


class AllocationSettings(BaseModel):
    model_config = ConfigDict(extra="forbid")

    # Retry ceiling per placement streak; its adequacy depends on grid size and constraint density.
    max_attempts: int = DEFAULT_MAX_ATTEMPTS
    # None => the caller picks a time-derived seed.
    seed: Optional[int] = None
    # Extra whole passes (with seed+1, seed+2, ...) after a placement failure.
    retries: int = 0

    @field_validator("max_attempts")
    @classmethod
    def _attempts_positive(cls, v: int) -> int:
        if not isinstance(v, int) or v <= 0:
            raise ValueError("must be a positive integer")
        return v

    @field_validator("retries")
    @classmethod
    def _retries_nonneg(cls, v: int) -> int:
        if not isinstance(v, int) or v < 0:
            raise ValueError("must be a non-negative integer")
        return v


class TimetableInput(BaseModel):
    model_config = ConfigDict(extra="forbid")

    calendar: Calendar = Field(default_factory=Calendar)
    sections: List[str] = Field(default_factory=lambda: list(DEFAULT_SECTIONS))
    subjects: List[Subject]
    settings: AllocationSettings = Field(default_factory=AllocationSettings)

    @field_validator("sections")
    @classmethod
    def _sections_clean(cls, v: List[str]) -> List[str]:
        out = _clean_unique_names(v, "section names")
        if not out:
            raise ValueError("must define at least one section")
        return out

    @model_validator(mode="after")
    def _subjects_bounds(self) -> "TimetableInput":
        if not self.subjects:
            raise ValueError("must have at least one subject")
        if len(self.subjects) > MAX_SUBJECTS:
            raise ValueError(f"at most {MAX_SUBJECTS} subjects are supported")
        names = [s.name for s in self.subjects]
        if len(set(names)) != len(names):
            raise ValueError("subject names must be unique")
        return self

    def validate_references(self) -> None:
        """
        Cross-field validation that depends on calendar.days.
        Excluded days are matched case-insensitively and rewritten to the calendar's spelling.
        """
        for subj in self.subjects:
            canonical: List[str] = []
            for d in subj.excluded_days:
                idx = self.calendar.day_index(d)
                if idx is None:
                    raise ValueError(f"subject '{subj.name}': excluded day '{d}' not in calendar.days")
                canonical.append(self.calendar.days[idx])
            subj.excluded_days = canonical

    def excluded_day_indices(self, subject: Subject) -> List[int]:
        out: List[int] = []
        for d in subject.excluded_days:
            idx = self.calendar.day_index(d)
            if idx is not None:
                out.append(idx)
        return out

    @classmethod
    def from_data(cls, data: Dict[str, Any]) -> "TimetableInput":
        try:
            obj = cls.model_validate(data)
        except ValidationError as e:
            # Re-raise with a cleaner message for CLI usage
            raise ValueError(str(e)) from e
        obj.validate_references()
        return obj

    @classmethod
    def load_file(cls, path: Union[str, Path]) -> "TimetableInput":
        p = Path(path)
        data = json.loads(p.read_text(encoding="utf-8"))
        return cls.from_data(data)

    def to_json_dict(self) -> Dict[str, Any]:
        # Keep output close to the input shape (omit Nones where possible)
        return self.model_dump(exclude_none=True)

    def save_file(self, path: Union[str, Path]) -> None:
        p = Path(path)
        p.write_text(json.dumps(self.to_json_dict(), indent=2, ensure_ascii=False) + "\n", encoding="utf-8")
