import argparse
import html
import logging
import random
import sys
import time
from dataclasses import dataclass, field
from typing import Callable, Dict, FrozenSet, List, Optional, Sequence, Tuple

from timetable_schema import (
    DEFAULT_MAX_ATTEMPTS,
    MAX_SUBJECTS,
    NO_FACULTY,
    Calendar,
    TimetableInput,
)

logger = logging.getLogger(__name__)

# A grid cell holding no assignment.
FREE = None
FREE_LABEL = "Free"

Coord = Tuple[int, int]


class SchedulingError(ValueError):
    """Base class for failures that abort a scheduling pass."""

    def to_dict(self) -> dict:
        return {"type": type(self).__name__, "message": str(self)}


class CapacityExceeded(SchedulingError):
    def __init__(self, required: int, available: int):
        self.required = required
        self.available = available
        super().__init__(f"Total required classes ({required}) exceed available slots ({available}).")

    def to_dict(self) -> dict:
        d = super().to_dict()
        d.update(required=self.required, available=self.available)
        return d


class SubjectUnschedulable(SchedulingError):
    def __init__(self, subject: str, reason: str, required: Optional[int] = None, possible: Optional[int] = None):
        self.subject = subject
        self.reason = reason
        self.required = required
        self.possible = possible
        if required is None:
            msg = f"Subject '{subject}' has {reason}."
        else:
            msg = f"Subject '{subject}' requires {required} periods/week but only {possible} possible."
        super().__init__(msg)

    def to_dict(self) -> dict:
        d = super().to_dict()
        d.update(subject=self.subject, reason=self.reason, required=self.required, possible=self.possible)
        return d


class PlacementExhausted(SchedulingError):
    """
    The random allocator ran out of attempts for one subject in one section.
    This depends on the seed: the same input may succeed on another run.
    """

    def __init__(self, subject: str, section: str, remaining: int):
        self.subject = subject
        self.section = section
        self.remaining = remaining
        super().__init__(
            f"Could not place all classes for '{subject}' in {section} ({remaining} remaining). "
            "Try relaxing constraints."
        )

    def to_dict(self) -> dict:
        d = super().to_dict()
        d.update(subject=self.subject, section=self.section, remaining=self.remaining)
        return d


@dataclass(frozen=True)
class SubjectSpec:
    name: str
    sessions_per_week: int
    excluded_days: FrozenSet[int] = frozenset()
    faculty: str = NO_FACULTY


@dataclass(frozen=True)
class Assignment:
    subject: str
    faculty: str

    @property
    def faculty_initial(self) -> str:
        return self.faculty[:1]

    @property
    def label(self) -> str:
        return f"{self.subject}({self.faculty_initial})"


@dataclass
class Section:
    name: str
    grid: Dict[Coord, Optional[Assignment]] = field(default_factory=dict)

    @classmethod
    def empty(cls, name: str, working_days: int, periods_per_day: int) -> "Section":
        return cls(name=name, grid={(d, p): FREE for d in range(working_days) for p in range(periods_per_day)})

    def is_free(self, day: int, period: int) -> bool:
        return self.grid[(day, period)] is FREE


@dataclass
class ScheduleResult:
    sections: List[Section]
    seed: int
    # Number of whole passes run (1 unless external retries kicked in).
    passes: int = 1


def time_seed() -> int:
    return time.time_ns()


def specs_from_input(ti: TimetableInput) -> List[SubjectSpec]:
    return [
        SubjectSpec(
            name=s.name,
            sessions_per_week=s.sessions_per_week,
            excluded_days=frozenset(ti.excluded_day_indices(s)),
            faculty=s.faculty,
        )
        for s in ti.subjects
    ]


# -------------------------------------------------------------------
# Feasibility
# -------------------------------------------------------------------


def check_feasibility(
    subjects: Sequence[SubjectSpec],
    *,
    working_days: int,
    periods_per_day: int,
    section_count: int,
) -> None:
    """
    Static pre-filter run before any random work. Raises the first failing check:
    global capacity, then per-subject day availability, then per-subject capacity.
    Pure: the same input always gives the same verdict.
    """
    total_required = sum(s.sessions_per_week for s in subjects)
    total_available = working_days * periods_per_day * section_count
    if total_required > total_available:
        raise CapacityExceeded(total_required, total_available)

    for s in subjects:
        available_days = working_days - len(s.excluded_days)
        if available_days < 1:
            raise SubjectUnschedulable(s.name, "no available days due to constraints")
        max_slots = available_days * periods_per_day * section_count
        if s.sessions_per_week > max_slots:
            raise SubjectUnschedulable(
                s.name, "not enough periods", required=s.sessions_per_week, possible=max_slots
            )


# -------------------------------------------------------------------
# Allocation
# -------------------------------------------------------------------


def _faculty_busy(faculty: str, day: int, period: int, sections: Sequence[Section], current: int) -> bool:
    if faculty == NO_FACULTY:
        return False
    for i, sec in enumerate(sections):
        if i == current:
            continue
        cell = sec.grid[(day, period)]
        if cell is not FREE and cell.faculty == faculty:
            return True
    return False


def _subject_clash(subject: str, day: int, period: int, sections: Sequence[Section], current: int) -> bool:
    for i, sec in enumerate(sections):
        if i == current:
            continue
        cell = sec.grid[(day, period)]
        if cell is not FREE and cell.subject == subject:
            return True
    return False


def allocate_sections(
    subjects: Sequence[SubjectSpec],
    sections: List[Section],
    *,
    working_days: int,
    periods_per_day: int,
    rng: random.Random,
    max_attempts: int = DEFAULT_MAX_ATTEMPTS,
) -> None:
    """
    Place every subject's sessions into every section's grid, in place.

    Sections are filled one after another; within a section subjects go in input order.
    Each placement draws a random (day, period) and rejects it if the cell is taken,
    the faculty or the subject already sits at that coordinate in another section, or
    the day is excluded. ``attempts`` restarts at zero after every accepted placement.
    Raises PlacementExhausted as soon as one subject cannot be completed.
    """
    for si, section in enumerate(sections):
        for subj in subjects:
            remaining = subj.sessions_per_week
            attempts = 0
            rejected = 0
            while remaining > 0 and attempts < max_attempts:
                d = rng.randrange(working_days)
                p = rng.randrange(periods_per_day)

                if (
                    not section.is_free(d, p)
                    or _faculty_busy(subj.faculty, d, p, sections, si)
                    or _subject_clash(subj.name, d, p, sections, si)
                    or d in subj.excluded_days
                ):
                    attempts += 1
                    rejected += 1
                    continue

                section.grid[(d, p)] = Assignment(subject=subj.name, faculty=subj.faculty)
                logger.debug("Placed | section=%s subject=%s day=%s period=%s", section.name, subj.name, d, p)
                remaining -= 1
                attempts = 0

            if remaining > 0:
                logger.warning(
                    "Placement exhausted | section=%s subject=%s remaining=%s max_attempts=%s",
                    section.name,
                    subj.name,
                    remaining,
                    max_attempts,
                )
                raise PlacementExhausted(subj.name, section.name, remaining)
            logger.debug(
                "Subject complete | section=%s subject=%s sessions=%s rejected_draws=%s",
                section.name,
                subj.name,
                subj.sessions_per_week,
                rejected,
            )


def solve_timetable(
    subjects: Sequence[SubjectSpec],
    *,
    section_names: Sequence[str],
    working_days: int,
    periods_per_day: int,
    seed: int,
    max_attempts: int = DEFAULT_MAX_ATTEMPTS,
    retries: int = 0,
) -> ScheduleResult:
    """
    One scheduling pass: feasibility check, fresh grids, random allocation.

    ``seed`` is required so runs are reproducible; callers wanting a different
    timetable each run pass ``time_seed()``. With ``retries`` > 0 a placement
    failure re-runs the whole pass on fresh grids with ``seed + n``.
    """
    check_feasibility(
        subjects,
        working_days=working_days,
        periods_per_day=periods_per_day,
        section_count=len(section_names),
    )

    n = 0
    while True:
        pass_seed = seed + n
        sections = [Section.empty(name, working_days, periods_per_day) for name in section_names]
        try:
            allocate_sections(
                subjects,
                sections,
                working_days=working_days,
                periods_per_day=periods_per_day,
                rng=random.Random(pass_seed),
                max_attempts=max_attempts,
            )
        except PlacementExhausted:
            if n >= retries:
                raise
            n += 1
            logger.warning("Retrying scheduling pass | pass=%s seed=%s", n + 1, seed + n)
            continue
        logger.info(
            "Timetable allocated | sections=%s subjects=%s seed=%s passes=%s",
            len(sections),
            len(subjects),
            pass_seed,
            n + 1,
        )
        return ScheduleResult(sections=sections, seed=pass_seed, passes=n + 1)


def solve_input(ti: TimetableInput, *, seed: Optional[int] = None) -> ScheduleResult:
    """Run a pass for a validated input. ``seed`` overrides settings.seed; both None => time-derived."""
    if seed is None:
        seed = ti.settings.seed if ti.settings.seed is not None else time_seed()
    return solve_timetable(
        specs_from_input(ti),
        section_names=ti.sections,
        working_days=ti.calendar.working_days,
        periods_per_day=ti.calendar.periods_per_day,
        seed=seed,
        max_attempts=ti.settings.max_attempts,
        retries=ti.settings.retries,
    )


def count_placements(sections: Sequence[Section]) -> Dict[str, Dict[str, int]]:
    counts: Dict[str, Dict[str, int]] = {}
    for sec in sections:
        for cell in sec.grid.values():
            if cell is FREE:
                continue
            per_sec = counts.setdefault(cell.subject, {})
            per_sec[sec.name] = per_sec.get(sec.name, 0) + 1
    return counts


def faculty_allocations(sections: Sequence[Section]) -> Dict[str, List[Tuple[str, int, int, str]]]:
    """faculty -> sorted [(section, day, period, subject)]; the no-faculty sentinel is left out."""
    out: Dict[str, List[Tuple[str, int, int, str]]] = {}
    for sec in sections:
        for (d, p), cell in sec.grid.items():
            if cell is FREE or cell.faculty == NO_FACULTY:
                continue
            out.setdefault(cell.faculty, []).append((sec.name, d, p, cell.subject))
    for rows in out.values():
        rows.sort(key=lambda r: (r[1], r[2], r[0]))
    return out


# -------------------------------------------------------------------
# Rendering
# -------------------------------------------------------------------


def _period_labels(periods_per_day: int) -> List[str]:
    return [f"P{i + 1}" for i in range(periods_per_day)]


def _format_grid(title: str, grid: List[List[str]], days: List[str], periods: List[str]) -> str:
    # Pretty print as aligned columns
    col_widths = [max(len(periods[i]), max(len(grid[r][i]) for r in range(len(days)))) for i in range(len(periods))]
    day_width = max(len("Day"), max(len(d) for d in days))

    lines: List[str] = [title]
    header = " " * (day_width + 2) + "  ".join(periods[i].ljust(col_widths[i]) for i in range(len(periods)))
    lines.append(header)
    for d, day in enumerate(days):
        lines.append(day.ljust(day_width) + "  " + "  ".join(grid[d][i].ljust(col_widths[i]) for i in range(len(periods))))
    return "\n".join(lines)


def _section_cells(section: Section, num_days: int, num_periods: int) -> List[List[str]]:
    grid: List[List[str]] = []
    for d in range(num_days):
        row: List[str] = []
        for p in range(num_periods):
            cell = section.grid[(d, p)]
            row.append(FREE_LABEL if cell is FREE else cell.label)
        grid.append(row)
    return grid


def _format_section_timetable(*, section: Section, calendar: Calendar) -> str:
    periods = _period_labels(calendar.periods_per_day)
    grid = _section_cells(section, calendar.working_days, calendar.periods_per_day)
    return _format_grid(f"Section: {section.name}", grid, calendar.days, periods)


def _format_faculty_timetable(*, faculty: str, sections: Sequence[Section], calendar: Calendar) -> str:
    periods = _period_labels(calendar.periods_per_day)
    grid = [["-"] * calendar.periods_per_day for _ in calendar.days]
    for sec in sections:
        for (d, p), cell in sec.grid.items():
            if cell is not FREE and cell.faculty == faculty:
                grid[d][p] = f"{sec.name}:{cell.subject}"
    return _format_grid(f"Faculty: {faculty}", grid, calendar.days, periods)


def _format_section_timetable_html(*, section: Section, calendar: Calendar) -> str:
    periods = _period_labels(calendar.periods_per_day)
    grid = _section_cells(section, calendar.working_days, calendar.periods_per_day)
    parts: List[str] = [f"<h2>Section: {html.escape(section.name)}</h2>", "<table>", "<tr><th>Day</th>"]
    parts.extend(f"<th>{html.escape(p)}</th>" for p in periods)
    parts.append("</tr>")
    for d, day in enumerate(calendar.days):
        parts.append(f"<tr><th>{html.escape(day)}</th>")
        for label in grid[d]:
            css = ' class="free"' if label == FREE_LABEL else ""
            parts.append(f"<td{css}>{html.escape(label)}</td>")
        parts.append("</tr>")
    parts.append("</table>")
    return "\n".join(parts)


def _wrap_html_document(body: str) -> str:
    return (
        "<!DOCTYPE html>\n<html>\n<head>\n<meta charset=\"utf-8\">\n<title>Timetables</title>\n"
        "<style>table{border-collapse:collapse;margin-bottom:1.5em}"
        "td,th{border:1px solid #999;padding:4px 8px}td.free{color:#999}</style>\n"
        f"</head>\n<body>\n{body}\n</body>\n</html>"
    )


def section_timetable_dict(section: Section, calendar: Calendar) -> Dict[str, Dict[str, str]]:
    periods = _period_labels(calendar.periods_per_day)
    grid = _section_cells(section, calendar.working_days, calendar.periods_per_day)
    return {day: {periods[p]: grid[d][p] for p in range(len(periods))} for d, day in enumerate(calendar.days)}


# -------------------------------------------------------------------
# Interactive input
# -------------------------------------------------------------------


def _ask_int(prompt: str, read: Callable[[str], str]) -> int:
    raw = read(prompt).strip()
    try:
        return int(raw)
    except ValueError:
        raise ValueError(f"expected a whole number, got '{raw}'") from None


def prompt_timetable_input(read: Optional[Callable[[str], str]] = None) -> TimetableInput:
    """Collect faculty, subjects, calendar and excluded days from prompts, then validate via the schema."""
    if read is None:
        read = input
    print(f"Enter faculty names (up to {MAX_SUBJECTS}):")
    faculty: List[str] = []
    for i in range(MAX_SUBJECTS):
        name = read(f"Faculty {i + 1} name (leave empty to finish): ").strip()
        if not name:
            break
        faculty.append(name)
    if not faculty:
        raise ValueError("at least one faculty member is required")

    # Each faculty member teaches one subject.
    subjects: List[dict] = []
    for fac in faculty:
        print(f"\nSubject for {fac}:")
        name = read("Enter name of subject: ").strip()
        spw = _ask_int(f"Enter classes per week for {name}: ", read)
        subjects.append({"name": name, "sessions_per_week": spw, "faculty": fac})

    working_days = _ask_int("\nEnter number of working days (1-7): ", read)
    periods_per_day = _ask_int("Enter number of periods per day: ", read)
    calendar = Calendar.for_working_days(working_days, periods_per_day)

    print("\nEnter subject constraints (comma-separated days, blank if none):")
    for s in subjects:
        raw = read(f"Days when {s['name']} is NOT available: ")
        s["excluded_days"] = [d.strip() for d in raw.split(",") if d.strip()]

    return TimetableInput.from_data({"calendar": calendar.model_dump(), "subjects": subjects})


# -------------------------------------------------------------------
# CLI
# -------------------------------------------------------------------


def main(argv: Optional[List[str]] = None) -> int:
    parser = argparse.ArgumentParser(description="Two-section timetable generator using randomized slot allocation.")
    src = parser.add_mutually_exclusive_group(required=True)
    src.add_argument("--input", help="Path to input JSON file.")
    src.add_argument("--interactive", action="store_true", help="Collect the input from prompts.")
    parser.add_argument("--seed", type=int, default=None, help="Random seed (default: settings.seed, else time-based).")
    parser.add_argument("--max_attempts", type=int, default=None, help="Override settings.max_attempts.")
    parser.add_argument("--retries", type=int, default=None, help="Override settings.retries.")
    parser.add_argument("--print_faculty", action="store_true", help="Also print timetable per faculty member.")
    parser.add_argument("--output_format", choices=["text", "html"], default="text", help="Output format.")
    parser.add_argument("--verbose", action="store_true", help="Log individual placements.")
    args = parser.parse_args(argv)
    if args.max_attempts is not None and args.max_attempts <= 0:
        parser.error("--max_attempts must be a positive integer")
    if args.retries is not None and args.retries < 0:
        parser.error("--retries must be a non-negative integer")

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.WARNING,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    try:
        if args.interactive:
            print("=== Timetable Generator ===\n")
            ti = prompt_timetable_input()
        else:
            ti = TimetableInput.load_file(args.input)
        if args.max_attempts is not None:
            ti.settings.max_attempts = args.max_attempts
        if args.retries is not None:
            ti.settings.retries = args.retries
        result = solve_input(ti, seed=args.seed)
    except SchedulingError as e:
        print(f"\nError: {e}")
        return 1
    except (OSError, ValueError) as e:
        print(f"\nInvalid input: {e}")
        return 1

    if args.output_format == "html":
        parts = [_format_section_timetable_html(section=s, calendar=ti.calendar) for s in result.sections]
        print(_wrap_html_document("\n".join(parts)))
        return 0

    print(f"\n=== Final Timetables (seed {result.seed}) ===\n")
    for sec in result.sections:
        print(_format_section_timetable(section=sec, calendar=ti.calendar))
        print()

    if args.print_faculty:
        for fac in sorted(faculty_allocations(result.sections)):
            print(_format_faculty_timetable(faculty=fac, sections=result.sections, calendar=ti.calendar))
            print()
    return 0


if __name__ == "__main__":
    sys.exit(main())
