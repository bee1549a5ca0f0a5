"""
Streamlit-based GUI editor for the timetable input JSON consumed by `timetable_solver.py`.

Runs as a local web app: `streamlit run timetable_web_gui.py`

The editor maps 1:1 to the JSON schema in `timetable_schema.py` and can run the
allocator directly on the in-memory input.
"""

from __future__ import annotations

import hashlib
import json
from typing import Any, Dict, List, Optional

import streamlit as st

from timetable_schema import DEFAULT_MAX_ATTEMPTS, MAX_PERIODS, MAX_SUBJECTS, WEEK_DAYS, TimetableInput
from timetable_solver import SchedulingError, section_timetable_dict, solve_input


def _parse_csv_list(s: str) -> List[str]:
    parts = [(p or "").strip() for p in (s or "").split(",")]
    return [p for p in parts if p]


def _csv(items: List[str]) -> str:
    return ", ".join(items)


def new_data() -> Dict[str, Any]:
    return {
        "calendar": {"days": WEEK_DAYS[:5], "periods_per_day": 6},
        "sections": ["Section A", "Section B"],
        "subjects": [],
        "settings": {"max_attempts": DEFAULT_MAX_ATTEMPTS, "retries": 0},
    }


def _subject_names(subjects: List[Dict[str, Any]]) -> List[str]:
    return [s.get("name") for s in subjects if isinstance(s, dict) and s.get("name")]


def _find_subject(subjects: List[Dict[str, Any]], name: str) -> Optional[Dict[str, Any]]:
    for s in subjects:
        if s.get("name") == name:
            return s
    return None


def _get_state() -> Dict[str, Any]:
    if "data" not in st.session_state:
        st.session_state["data"] = new_data()
    if "save_path" not in st.session_state:
        st.session_state["save_path"] = "timetable_input.json"
    if "uploaded_sig" not in st.session_state:
        st.session_state["uploaded_sig"] = None
    return st.session_state["data"]


def _save_to_disk(data: Dict[str, Any]) -> None:
    path = str(st.session_state.get("save_path") or "").strip()
    if not path:
        st.error("Save path is empty. Set 'Save path' in the sidebar.")
        return
    try:
        # Use the shared schema for validation and for producing a normalized JSON payload.
        ti = TimetableInput.from_data(data)
        ti.save_file(path)
        st.success(f"Saved to: {path}")
    except ValueError as e:
        st.error(f"Could not save (validation failed): {e}")


def _sidebar(data: Dict[str, Any]) -> None:
    with st.sidebar:
        st.header("File")
        uploaded = st.file_uploader("Load JSON", type=["json"])
        if uploaded is not None:
            raw = uploaded.getvalue()
            sig = hashlib.sha256(raw).hexdigest()
            # Only load once per distinct upload; reruns would otherwise clobber edits.
            if sig != st.session_state.get("uploaded_sig"):
                try:
                    loaded = TimetableInput.from_data(json.loads(raw.decode("utf-8")))
                    st.session_state["data"] = loaded.to_json_dict()
                    st.session_state["uploaded_sig"] = sig
                    st.success("Loaded JSON into editor.")
                except ValueError as e:
                    st.error(f"Failed to load JSON: {e}")

        if st.button("New (reset)"):
            st.session_state["data"] = new_data()
            st.session_state["last_run"] = None
            st.success("Reset to new template.")

        st.divider()
        st.subheader("Save / Export")
        st.session_state["save_path"] = st.text_input("Save path", value=st.session_state["save_path"])
        if st.button("Save now"):
            _save_to_disk(st.session_state["data"])


def _calendar_tab(data: Dict[str, Any]) -> None:
    st.subheader("Calendar")
    cal = data.setdefault("calendar", {})
    days = cal.get("days", WEEK_DAYS[:5])
    n_days = st.number_input("Working days", min_value=1, max_value=len(WEEK_DAYS), step=1, value=len(days))
    ppd = st.number_input(
        "Periods per day", min_value=1, max_value=MAX_PERIODS, step=1, value=int(cal.get("periods_per_day", 6))
    )
    custom = st.text_input("Day names (comma-separated, optional)", value=_csv(days))
    if st.button("Apply calendar changes"):
        names = _parse_csv_list(custom)
        if len(names) != int(n_days):
            names = WEEK_DAYS[: int(n_days)]
        cal["days"] = names
        cal["periods_per_day"] = int(ppd)
        st.success("Calendar updated.")


def _sections_tab(data: Dict[str, Any]) -> None:
    st.subheader("Sections")
    sections_csv = st.text_input("Section names (comma-separated)", value=_csv(data.get("sections", [])))
    if st.button("Apply sections"):
        names = _parse_csv_list(sections_csv)
        if not names:
            st.error("At least one section is required.")
        else:
            data["sections"] = names
            st.success("Sections updated.")


def _subjects_tab(data: Dict[str, Any]) -> None:
    st.subheader("Subjects")
    subjects = data.setdefault("subjects", [])
    days = (data.get("calendar") or {}).get("days", WEEK_DAYS[:5])
    names = _subject_names(subjects)

    mode = st.radio("Mode", options=["Add", "Edit"], horizontal=True)
    existing = None
    if mode == "Edit":
        sel = st.selectbox("Subject", options=["(select)"] + names)
        existing = _find_subject(subjects, sel) if sel != "(select)" else None
    base = existing or {}

    key = f"subj__{mode}__{base.get('name', '')}"
    s_name = st.text_input("Name*", value=base.get("name", ""), key=f"{key}__name")
    s_faculty = st.text_input("Faculty (blank = unassigned)", value=base.get("faculty", ""), key=f"{key}__fac")
    s_spw = st.number_input(
        "Sessions per week*", min_value=1, step=1, value=int(base.get("sessions_per_week", 1)), key=f"{key}__spw"
    )
    s_excluded = st.multiselect(
        "Excluded days",
        options=list(days),
        default=[d for d in base.get("excluded_days", []) if d in days],
        key=f"{key}__excl",
    )

    if st.button("Save subject", key=f"{key}__save"):
        name = (s_name or "").strip()
        if not name:
            st.error("Subject name is required.")
            return
        subj_obj: Dict[str, Any] = {"name": name, "sessions_per_week": int(s_spw)}
        if (s_faculty or "").strip():
            subj_obj["faculty"] = s_faculty.strip()
        if s_excluded:
            subj_obj["excluded_days"] = list(s_excluded)

        if mode == "Add":
            if name in names:
                st.error("Subject with that name already exists.")
            elif len(subjects) >= MAX_SUBJECTS:
                st.error(f"At most {MAX_SUBJECTS} subjects are supported.")
            else:
                subjects.append(subj_obj)
                st.success(f"Added subject '{name}'.")
        elif existing is None:
            st.error("No subject selected to edit.")
        elif name in {n for n in names if n != existing.get("name")}:
            st.error("Another subject with that name already exists.")
        else:
            existing.clear()
            existing.update(subj_obj)
            st.success(f"Updated subject '{name}'.")

    st.divider()
    rem = st.selectbox("Remove subject", options=["(select)"] + names, key="remsel")
    if st.button("Remove selected subject") and rem != "(select)":
        data["subjects"] = [s for s in subjects if s.get("name") != rem]
        st.success(f"Removed '{rem}'.")


def _settings_tab(data: Dict[str, Any]) -> None:
    st.subheader("Allocation settings")
    settings = data.setdefault("settings", {})
    max_attempts = st.number_input(
        "Max attempts per placement", min_value=1, step=1000, value=int(settings.get("max_attempts", DEFAULT_MAX_ATTEMPTS))
    )
    retries = st.number_input("Extra passes on failure", min_value=0, step=1, value=int(settings.get("retries", 0)))
    seed_txt = st.text_input("Seed (blank = time-based)", value=str(settings.get("seed", "") or ""))
    if st.button("Apply settings"):
        settings["max_attempts"] = int(max_attempts)
        settings["retries"] = int(retries)
        seed_txt = seed_txt.strip()
        if not seed_txt:
            settings.pop("seed", None)
            st.success("Settings updated.")
        else:
            try:
                settings["seed"] = int(seed_txt)
                st.success("Settings updated.")
            except ValueError:
                st.error("Seed must be a whole number.")


def _run_section(data: Dict[str, Any]) -> None:
    st.divider()
    st.subheader("Run allocator")
    if "last_run" not in st.session_state:
        st.session_state["last_run"] = None

    if st.button("Generate timetable", type="primary"):
        try:
            ti = TimetableInput.from_data(data)
            result = solve_input(ti)
        except SchedulingError as e:
            st.session_state["last_run"] = {"error": e.to_dict()}
        except ValueError as e:
            st.session_state["last_run"] = {"error": {"type": "InvalidInput", "message": str(e)}}
        else:
            st.session_state["last_run"] = {
                "seed": result.seed,
                "passes": result.passes,
                "timetables": [(s.name, section_timetable_dict(s, ti.calendar)) for s in result.sections],
            }

    last = st.session_state.get("last_run")
    if not last:
        return
    if "error" in last:
        st.error(f"{last['error']['type']}: {last['error']['message']}")
        return
    st.write(f"Seed: `{last['seed']}` (passes: {last['passes']})")
    for name, table in last["timetables"]:
        st.markdown(f"**{name}**")
        # one column per day, one row per period
        st.table({day: list(periods.values()) for day, periods in table.items()})


def main() -> None:
    st.set_page_config(page_title="Timetable Input Editor", layout="wide")
    st.title("Timetable Input Editor")

    data = _get_state()
    _sidebar(data)
    data = st.session_state["data"]

    tab_cal, tab_sections, tab_subjects, tab_settings, tab_preview = st.tabs(
        ["Calendar", "Sections", "Subjects", "Settings", "Preview"]
    )
    with tab_cal:
        _calendar_tab(data)
    with tab_sections:
        _sections_tab(data)
    with tab_subjects:
        _subjects_tab(data)
    with tab_settings:
        _settings_tab(data)
    with tab_preview:
        st.subheader("Preview")
        st.code(json.dumps(data, indent=2, ensure_ascii=False), language="json")

    _run_section(data)


if __name__ == "__main__":
    main()
