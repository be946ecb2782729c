"""Default records and patch builders for each synchronized resource.

Patch builders are pure: they read the current record and return a dict of
top-level fields to replace, suitable for ``SyncController.edit``. Nested
structures are copied, never mutated in place.
"""

import copy
import time
import uuid
from datetime import date
from typing import Any, Dict, Iterable, List, Optional

from daysync.types import UPDATED_AT, Record, ResourceKind, utc_now

Patch = Dict[str, Any]

DEFAULT_TRACKER_ITEMS: List[Dict[str, Any]] = [
    {"id": "water", "name": "Drink water", "excludedDays": []},
    {"id": "exercise", "name": "Exercise", "excludedDays": []},
    {"id": "reading", "name": "Reading", "excludedDays": []},
    {"id": "meditation", "name": "Meditation", "excludedDays": []},
    {"id": "gratitude", "name": "Gratitude", "excludedDays": []},
]

DEFAULT_AXIS1 = {"name": "MOOD", "min": -2, "max": 2}
DEFAULT_AXIS2 = {"name": "SLEEP", "min": 4, "max": 8}

AXIS_PRESETS: List[Dict[str, Any]] = [
    {"label": "Mood", "config": {"name": "MOOD", "min": -2, "max": 2}},
    {"label": "Sleep (hours)", "config": {"name": "SLEEP", "min": 4, "max": 8}},
    {"label": "Energy", "config": {"name": "ENERGY", "min": 1, "max": 5}},
    {"label": "Stress", "config": {"name": "STRESS", "min": 1, "max": 5}},
    {"label": "Exercise (minutes)", "config": {"name": "EXERCISE", "min": 0, "max": 60}},
    {"label": "Water (L)", "config": {"name": "WATER", "min": 0, "max": 3}},
    {"label": "Focus", "config": {"name": "FOCUS", "min": 1, "max": 5}},
    {"label": "Custom", "config": {"name": "CUSTOM", "min": 0, "max": 10}},
]


def default_record(kind: ResourceKind) -> Record:
    """A fresh record for a period that exists in neither store."""
    kind = ResourceKind(kind)
    if kind is ResourceKind.JOURNAL:
        body: Record = {"diary": "", "tasks": []}
    elif kind is ResourceKind.TRACKER:
        body = {"items": copy.deepcopy(DEFAULT_TRACKER_ITEMS), "records": {}}
    elif kind is ResourceKind.GRAPH:
        body = {"axis1": dict(DEFAULT_AXIS1), "axis2": dict(DEFAULT_AXIS2), "records": {}}
    else:
        body = {"tasks": []}
    body[UPDATED_AT] = utc_now()
    return body


def new_id() -> str:
    """Millisecond timestamp plus a short random suffix."""
    return f"{int(time.time() * 1000)}{uuid.uuid4().hex[:9]}"


# === Period helpers ===


def day_key(d: date) -> str:
    return d.strftime("%Y-%m-%d")


def month_key(d: date) -> str:
    return d.strftime("%Y-%m")


def date_key(month: str, day: int) -> str:
    """``date_key("2024-05", 3) -> "2024-05-03"``."""
    return f"{month}-{day:02d}"


def _require_text(text: str, field: str) -> str:
    cleaned = (text or "").strip()
    if not cleaned:
        raise ValueError(f"{field} must not be blank")
    return cleaned


# === Journal ===


def set_diary(record: Record, text: str) -> Patch:
    return {"diary": text}


def add_journal_task(record: Record, text: str, task_id: Optional[str] = None) -> Patch:
    task = {"id": task_id or new_id(), "text": _require_text(text, "task text"), "completed": False}
    return {"tasks": list(record.get("tasks") or []) + [task]}


def toggle_journal_task(record: Record, task_id: str) -> Patch:
    tasks = [
        {**task, "completed": not task.get("completed")} if task.get("id") == task_id else task
        for task in record.get("tasks") or []
    ]
    return {"tasks": tasks}


def delete_journal_task(record: Record, task_id: str) -> Patch:
    return {"tasks": [t for t in record.get("tasks") or [] if t.get("id") != task_id]}


def copy_tasks(record: Record, source_tasks: Iterable[Dict[str, Any]]) -> Patch:
    """Append tasks from the work-screen list under fresh ids."""
    copied = [
        {"id": new_id(), "text": t.get("text", ""), "completed": bool(t.get("completed"))}
        for t in source_tasks
    ]
    return {"tasks": list(record.get("tasks") or []) + copied}


# === Tracker ===


def toggle_cell(record: Record, date_key: str, item_id: str) -> Patch:
    records = copy.deepcopy(record.get("records") or {})
    day = records.setdefault(date_key, {})
    day[item_id] = not day.get(item_id, False)
    return {"records": records}


def add_tracker_item(record: Record, name: str, item_id: Optional[str] = None) -> Patch:
    item = {"id": item_id or new_id(), "name": _require_text(name, "item name"), "excludedDays": []}
    return {"items": copy.deepcopy(record.get("items") or []) + [item]}


def rename_tracker_item(record: Record, item_id: str, name: str) -> Patch:
    """Blank names leave the item unchanged."""
    cleaned = (name or "").strip()
    items = copy.deepcopy(record.get("items") or [])
    if cleaned:
        for item in items:
            if item.get("id") == item_id:
                item["name"] = cleaned
    return {"items": items}


def delete_tracker_item(record: Record, item_id: str) -> Patch:
    return {"items": [copy.deepcopy(i) for i in record.get("items") or [] if i.get("id") != item_id]}


def toggle_excluded_day(record: Record, item_id: str, day: int) -> Patch:
    items = copy.deepcopy(record.get("items") or [])
    for item in items:
        if item.get("id") != item_id:
            continue
        excluded = list(item.get("excludedDays") or [])
        if day in excluded:
            excluded.remove(day)
        else:
            excluded.append(day)
            excluded.sort()
        item["excludedDays"] = excluded
    return {"items": items}


def cell_state(record: Record, date_key: str, item_id: str) -> str:
    """``"excluded"``, ``"done"`` or ``"not-done"`` for one tracker cell."""
    day = int(date_key.rsplit("-", 1)[1])
    for item in record.get("items") or []:
        if item.get("id") == item_id and day in (item.get("excludedDays") or []):
            return "excluded"
    done = (record.get("records") or {}).get(date_key, {}).get(item_id)
    return "done" if done else "not-done"


# === Graph ===


def _clamp(value: Optional[float], axis: Dict[str, Any]) -> Optional[float]:
    if value is None:
        return None
    return max(axis["min"], min(axis["max"], value))


def set_graph_values(
    record: Record, date_key: str, value1: Optional[float], value2: Optional[float]
) -> Patch:
    records = copy.deepcopy(record.get("records") or {})
    records[date_key] = {"value1": value1, "value2": value2}
    return {"records": records}


def set_axes(record: Record, axis1: Dict[str, Any], axis2: Dict[str, Any]) -> Patch:
    """Replace both axes and clamp every stored value into the new ranges."""
    for axis in (axis1, axis2):
        if axis["min"] > axis["max"]:
            raise ValueError(f"axis {axis.get('name')!r} has min > max")
    records = {
        dk: {
            "value1": _clamp(values.get("value1"), axis1),
            "value2": _clamp(values.get("value2"), axis2),
        }
        for dk, values in (record.get("records") or {}).items()
    }
    return {"axis1": dict(axis1), "axis2": dict(axis2), "records": records}


# === Monthly tasks ===


def add_monthly_task(
    record: Record, text: str, target_count: int = 1, task_id: Optional[str] = None
) -> Patch:
    if target_count < 1:
        raise ValueError("target_count must be at least 1")
    task = {
        "id": task_id or new_id(),
        "text": _require_text(text, "task text"),
        "targetCount": target_count,
        "completedCount": 0,
    }
    return {"tasks": copy.deepcopy(record.get("tasks") or []) + [task]}


def _adjust_completed(record: Record, task_id: str, delta: int) -> Patch:
    tasks = copy.deepcopy(record.get("tasks") or [])
    for task in tasks:
        if task.get("id") == task_id:
            count = task.get("completedCount", 0) + delta
            task["completedCount"] = max(0, min(task.get("targetCount", 0), count))
    return {"tasks": tasks}


def increment_completed(record: Record, task_id: str) -> Patch:
    return _adjust_completed(record, task_id, 1)


def decrement_completed(record: Record, task_id: str) -> Patch:
    return _adjust_completed(record, task_id, -1)


def delete_monthly_task(record: Record, task_id: str) -> Patch:
    return {"tasks": [copy.deepcopy(t) for t in record.get("tasks") or [] if t.get("id") != task_id]}
