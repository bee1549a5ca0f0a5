import json
import logging
from pathlib import Path
from typing import Optional

from fastapi import FastAPI, HTTPException
from fastapi.middleware.cors import CORSMiddleware

from timetable_schema import TimetableInput
from timetable_solver import (
    SchedulingError,
    count_placements,
    faculty_allocations,
    section_timetable_dict,
    solve_input,
)

logger = logging.getLogger(__name__)

SAMPLE_FILE_PATH = Path(__file__).resolve().parent.parent / "timetable_input.sample.json"

app = FastAPI()

# Allow requests from the Next.js development server
app.add_middleware(
    CORSMiddleware,
    allow_origins=["http://localhost:3000"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.get("/app_initial_data")
async def get_app_initial_data():
    """Returns the sample input used to seed the editor."""
    if not SAMPLE_FILE_PATH.is_file():
        raise HTTPException(status_code=404, detail=f"sample input not found at {SAMPLE_FILE_PATH}")
    with SAMPLE_FILE_PATH.open(encoding="utf-8") as f:
        return json.load(f)


@app.post("/solve")
def solve_timetable_endpoint(request: TimetableInput, seed: Optional[int] = None):
    ti = request
    try:
        ti.validate_references()
    except ValueError as e:
        raise HTTPException(status_code=400, detail={"message": "Invalid input", "error": str(e)})

    try:
        result = solve_input(ti, seed=seed)
    except SchedulingError as e:
        logger.info("Solve rejected | error=%s", type(e).__name__)
        raise HTTPException(status_code=400, detail={"message": "Unschedulable", "error": e.to_dict()})

    timetables = [
        {"section_name": sec.name, "timetable": section_timetable_dict(sec, ti.calendar)}
        for sec in result.sections
    ]
    days = ti.calendar.days
    allocations = [
        {
            "faculty": fac,
            "total_periods": len(rows),
            "allocations": [
                {"section": sec_name, "day": days[d], "period": f"P{p + 1}", "subject": subj}
                for sec_name, d, p, subj in rows
            ],
        }
        for fac, rows in sorted(faculty_allocations(result.sections).items())
    ]

    return {
        "status": "OK",
        "seed": result.seed,
        "passes": result.passes,
        "payload": {
            "timetables": timetables,
            "placement_counts": count_placements(result.sections),
            "faculty_allocations": allocations,
        },
    }
