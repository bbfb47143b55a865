"""Daily entry form validation and normalization."""

import logging
import math
from dataclasses import dataclass, field
from typing import Any, Mapping, Optional
from urllib.parse import urlparse

from multitracker.store.errors import FieldError, ValidationError
from multitracker.store.models import NormalizedEntry, StepStatus, parse_date

logger = logging.getLogger(__name__)

# Normalized field -> accepted input keys (form names, camelCase, backend snake_case)
FIELD_ALIASES = {
    "date": ("date",),
    "study": ("study", "studyActivities"),
    "exercise": ("exercise",),
    "meditation": ("meditation",),
    "english_practice": ("english_practice", "englishPractice"),
    "linkedin_post": ("linkedin_post", "linkedinPost"),
    "summary": ("summary", "dailySummary"),
    "test_link": ("test_link", "testLink"),
    "water_intake_liters": ("water_intake_liters", "waterIntakeLiters", "water_intake", "waterIntake"),
    "total_sleep_hours": ("total_sleep_hours", "totalSleepHours", "sleepHours"),
    "first_bath": ("first_bath", "firstBath"),
    "second_bath": ("second_bath", "secondBath"),
    "walk_10k_steps": ("walk_10k_steps", "walk10kSteps", "stepsAchievement"),
}

TEXT_FIELDS = (
    "study",
    "exercise",
    "meditation",
    "english_practice",
    "linkedin_post",
    "summary",
)

# Slider bounds
NUMBER_RANGES = {
    "water_intake_liters": (0.0, 10.0),
    "total_sleep_hours": (0.0, 24.0),
}

TRUTHY = {"on", "true", "1", "yes", "y", "checked"}


@dataclass
class ValidationResult:
    """Normalized entry plus any recoverable field errors."""

    entry: NormalizedEntry
    errors: list[FieldError] = field(default_factory=list)

    @property
    def ok(self) -> bool:
        return not self.errors


def validate(raw: Any) -> ValidationResult:
    """
    Validate and normalize a submitted daily entry.

    Recoverable problems (bad numbers, unknown step status, bad URL) are
    returned as field errors and the offending field is left absent.
    Out-of-range numbers are clamped, not rejected.

    Args:
        raw: Form input mapping, or an already normalized entry

    Returns:
        ValidationResult

    Raises:
        ValidationError: input is not a mapping, or the date is missing or unparseable
    """
    if isinstance(raw, NormalizedEntry):
        raw = raw.model_dump()
    if not isinstance(raw, Mapping):
        raise ValidationError(message="Entry must be a mapping of form fields.")

    values = {name: _lookup(raw, keys) for name, keys in FIELD_ALIASES.items()}
    errors: list[FieldError] = []

    if values["date"] in (None, ""):
        raise ValidationError([FieldError("date", "Date is required.")])
    try:
        day = parse_date(_single(values["date"]))
    except (TypeError, ValueError):
        raise ValidationError([FieldError("date", f"Invalid date: {values['date']!r}")])

    normalized: dict[str, Any] = {"date": day}

    for name in TEXT_FIELDS:
        normalized[name] = _text(name, values[name], errors)

    normalized["test_link"] = _url("test_link", values["test_link"], errors)

    for name, (low, high) in NUMBER_RANGES.items():
        normalized[name] = _number(name, values[name], low, high, errors)

    normalized["first_bath"] = _checkbox(values["first_bath"])
    normalized["second_bath"] = _checkbox(values["second_bath"])

    try:
        normalized["walk_10k_steps"] = StepStatus.parse(_single(values["walk_10k_steps"]))
    except ValueError:
        errors.append(
            FieldError(
                "walk_10k_steps",
                f"Unknown step status {values['walk_10k_steps']!r}; expected one of "
                + ", ".join(s.value for s in StepStatus),
            )
        )
        normalized["walk_10k_steps"] = StepStatus.NOT_TRACKED

    if errors:
        logger.warning(f"Entry for {day} has {len(errors)} validation errors")

    return ValidationResult(entry=NormalizedEntry(**normalized), errors=errors)


def _lookup(raw: Mapping, keys: tuple) -> Any:
    for key in keys:
        if key in raw:
            return raw[key]
    return None


def _single(value: Any) -> Any:
    """Unwrap single-valued sliders and repeated form fields ([2] -> 2)."""
    if isinstance(value, (list, tuple)):
        return value[0] if len(value) == 1 else value
    return value


def _text(name: str, value: Any, errors: list) -> Optional[str]:
    value = _single(value)
    if value is None:
        return None
    if isinstance(value, bool) or not isinstance(value, (str, int, float)):
        errors.append(FieldError(name, "Must be text."))
        return None
    text = str(value).strip()
    return text or None


def _url(name: str, value: Any, errors: list) -> Optional[str]:
    text = _text(name, value, errors)
    if text is None:
        return None
    parsed = urlparse(text)
    if parsed.scheme not in ("http", "https") or not parsed.netloc:
        errors.append(FieldError(name, "Must be an http(s) URL."))
        return None
    return text


def _number(name: str, value: Any, low: float, high: float, errors: list) -> Optional[float]:
    value = _single(value)
    if value is None or (isinstance(value, str) and not value.strip()):
        return None
    if isinstance(value, bool):
        errors.append(FieldError(name, "Must be a number."))
        return None
    try:
        number = float(value)
    except (TypeError, ValueError):
        errors.append(FieldError(name, f"Must be a number, got {value!r}."))
        return None
    if not math.isfinite(number):
        errors.append(FieldError(name, "Must be a finite number."))
        return None

    clamped = min(max(number, low), high)
    if clamped != number:
        logger.debug(f"Clamped {name} from {number} to {clamped}")
    return clamped


def _checkbox(value: Any) -> bool:
    value = _single(value)
    if value is None:
        return False
    if isinstance(value, bool):
        return value
    if isinstance(value, (int, float)):
        return value != 0
    return str(value).strip().lower() in TRUTHY
