"""Dashboard view composition: stat cards and table rows from controller state."""

from typing import Optional

from multitracker.session.controller import DashboardState
from multitracker.store.models import ProgressEntry, User, WeeklyAggregate


def initials(name: str) -> str:
    """
    Avatar fallback text.

    Example:
        "Ada Lovelace" -> "AL", "plato" -> "PL"
    """
    names = name.split()
    if len(names) > 1:
        return f"{names[0][0]}{names[-1][0]}".upper()
    return name.strip()[:2].upper()


def _number(value: float) -> str:
    return f"{value:g}"


def stat_cards(weekly: Optional[WeeklyAggregate]) -> list[dict]:
    """Four weekly stat cards, or an empty list when no aggregate is loaded."""
    if weekly is None:
        return []

    return [
        {"title": "Total Steps", "value": f"{weekly.total_steps:,}", "period": "This week"},
        {
            "title": "Water Intake",
            "value": f"{_number(weekly.total_water_liters)}L",
            "period": "This week",
        },
        {
            "title": "Sleep Hours",
            "value": f"{_number(weekly.total_sleep_hours)}h",
            "period": "This week",
        },
        {
            "title": "Weekly Goal",
            "value": f"{_number(weekly.progress_percentage)}%",
            "period": f"{weekly.window.days}-day completion",
        },
    ]


def table_row(entry: ProgressEntry) -> dict:
    return {
        "id": entry.id,
        "date": entry.date.strftime("%b %d"),
        "study": entry.study or "",
        "meditation": entry.meditation or "",
        "water": _number(entry.water_intake_liters) if entry.water_intake_liters is not None else "",
        "exercise": entry.exercise or "",
        "sleep": f"{_number(entry.total_sleep_hours)}h" if entry.total_sleep_hours is not None else "",
        "steps": entry.walk_10k_steps.label,
    }


def user_option(user: User) -> dict:
    return {
        "id": user.id,
        "name": user.name,
        "image_url": user.image_url,
        "initials": initials(user.name),
    }


def compose(state: DashboardState) -> dict:
    """Render-ready dashboard document."""
    selected = state.selected_user
    return {
        "status": state.status,
        "error": state.error,
        "selected_user": user_option(selected) if selected else None,
        "users": [user_option(user) for user in state.users],
        "stats": stat_cards(state.aggregate),
        "stats_source": state.aggregate_source,
        "rows": [table_row(entry) for entry in state.entries],
        "submitting": state.submitting,
        "submit_error": state.submit_error,
    }
