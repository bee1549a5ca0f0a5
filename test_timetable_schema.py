import pytest
from pydantic import ValidationError

from timetable_schema import (
    DEFAULT_MAX_ATTEMPTS,
    MAX_SUBJECTS,
    NO_FACULTY,
    Calendar,
    Subject,
    TimetableInput,
)
from timetable_solver import specs_from_input


def test_defaults():
    ti = TimetableInput.from_data({"subjects": [{"name": "Math", "sessions_per_week": 2}]})

    assert ti.calendar.days == ["Monday", "Tuesday", "Wednesday", "Thursday", "Friday"]
    assert ti.calendar.periods_per_day == 6
    assert ti.sections == ["Section A", "Section B"]
    assert ti.settings.max_attempts == DEFAULT_MAX_ATTEMPTS
    assert ti.settings.seed is None
    assert ti.settings.retries == 0
    assert ti.subjects[0].faculty == NO_FACULTY


def test_names_are_trimmed_and_blank_faculty_is_unassigned():
    s = Subject(name="  Math ", sessions_per_week=3, faculty="   ", excluded_days=[" Monday", "monday", "Friday "])

    assert s.name == "Math"
    assert s.faculty == NO_FACULTY
    assert s.excluded_days == ["Monday", "Friday"]


@pytest.mark.parametrize("spw", [0, -2])
def test_sessions_per_week_must_be_positive(spw):
    with pytest.raises(ValidationError):
        Subject(name="Math", sessions_per_week=spw)


def test_calendar_bounds():
    with pytest.raises(ValidationError):
        Calendar(days=[], periods_per_day=4)
    with pytest.raises(ValidationError):
        Calendar(days=["Mon", "mon"], periods_per_day=4)
    with pytest.raises(ValidationError):
        Calendar(days=["Mon"], periods_per_day=0)
    with pytest.raises(ValidationError):
        Calendar(days=["Mon"], periods_per_day=11)


def test_calendar_for_working_days():
    cal = Calendar.for_working_days(6, 3)

    assert cal.days[-1] == "Saturday"
    assert cal.working_days == 6
    assert cal.day_index("saturday") == 5
    assert cal.day_index("Sunday") is None
    with pytest.raises(ValueError):
        Calendar.for_working_days(8, 3)


def test_excluded_days_are_canonicalized():
    ti = TimetableInput.from_data({
        "calendar": {"days": ["Mon", "Tue", "Wed"], "periods_per_day": 2},
        "subjects": [{"name": "Math", "sessions_per_week": 1, "excluded_days": ["tue", "WED"]}],
    })

    assert ti.subjects[0].excluded_days == ["Tue", "Wed"]
    assert specs_from_input(ti)[0].excluded_days == frozenset({1, 2})


def test_unknown_excluded_day_is_rejected():
    with pytest.raises(ValueError, match="excluded day 'Sat' not in calendar.days"):
        TimetableInput.from_data({
            "calendar": {"days": ["Mon", "Tue"], "periods_per_day": 2},
            "subjects": [{"name": "Math", "sessions_per_week": 1, "excluded_days": ["Sat"]}],
        })


def test_subject_names_must_be_unique():
    with pytest.raises(ValueError, match="unique"):
        TimetableInput.from_data({
            "subjects": [
                {"name": "Math", "sessions_per_week": 1},
                {"name": " Math", "sessions_per_week": 2},
            ],
        })


def test_subject_count_is_bounded():
    subjects = [{"name": f"S{i}", "sessions_per_week": 1} for i in range(MAX_SUBJECTS + 1)]

    with pytest.raises(ValueError, match=f"at most {MAX_SUBJECTS} subjects"):
        TimetableInput.from_data({"subjects": subjects})


def test_sections_must_be_unique_and_non_empty():
    with pytest.raises(ValueError):
        TimetableInput.from_data({"sections": [], "subjects": [{"name": "Math", "sessions_per_week": 1}]})
    with pytest.raises(ValueError):
        TimetableInput.from_data({"sections": ["A", "a"], "subjects": [{"name": "Math", "sessions_per_week": 1}]})


def test_unknown_fields_are_forbidden():
    with pytest.raises(ValueError):
        TimetableInput.from_data({"subjects": [{"name": "Math", "sessions_per_week": 1, "room": "101"}]})


def test_settings_validation():
    with pytest.raises(ValueError):
        TimetableInput.from_data({"subjects": [{"name": "Math", "sessions_per_week": 1}], "settings": {"max_attempts": 0}})
    with pytest.raises(ValueError):
        TimetableInput.from_data({"subjects": [{"name": "Math", "sessions_per_week": 1}], "settings": {"retries": -1}})


def test_save_and_load_file(tmp_path):
    ti = TimetableInput.from_data({
        "calendar": {"days": ["Mon", "Tue"], "periods_per_day": 3},
        "sections": ["X", "Y", "Z"],
        "subjects": [{"name": "Math", "sessions_per_week": 2, "faculty": "Anita", "excluded_days": ["mon"]}],
        "settings": {"seed": 5},
    })
    path = tmp_path / "input.json"

    ti.save_file(path)
    loaded = TimetableInput.load_file(path)

    assert loaded == ti
    assert loaded.subjects[0].excluded_days == ["Mon"]
    assert "seed" in path.read_text(encoding="utf-8")
