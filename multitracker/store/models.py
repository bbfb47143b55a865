"""Data models for users, daily progress entries and weekly aggregates."""

import datetime as dt
from dataclasses import dataclass
from enum import Enum
from typing import Any, Optional

from pydantic import AliasChoices, BaseModel, ConfigDict, Field, field_validator

TEXT_FIELDS = (
    "study",
    "exercise",
    "meditation",
    "english_practice",
    "linkedin_post",
    "summary",
    "test_link",
)


class StepStatus(str, Enum):
    """Daily 10k steps goal status."""

    COMPLETED = "completed"
    PARTIAL = "partial"
    NOT_COMPLETED = "not_completed"
    NOT_TRACKED = "not_tracked"

    @property
    def label(self) -> str:
        return self.value.replace("_", " ").capitalize()

    @classmethod
    def parse(cls, value: Any) -> "StepStatus":
        """Parse a status from its value or display label ("Not completed")."""
        if isinstance(value, cls):
            return value
        if value is None:
            return cls.NOT_TRACKED
        text = str(value).strip().lower().replace(" ", "_").replace("-", "_")
        if not text:
            return cls.NOT_TRACKED
        return cls(text)


def parse_date(value: Any) -> dt.date:
    """Parse a calendar date from a date, datetime or ISO string."""
    if isinstance(value, dt.datetime):
        return value.date()
    if isinstance(value, dt.date):
        return value
    if isinstance(value, str):
        # Server timestamps look like "2025-09-09T00:00:00.000Z"
        return dt.date.fromisoformat(value.strip()[:10])
    raise ValueError(f"Not a date: {value!r}")


def clean_text(value: Any) -> Optional[str]:
    """Collapse None, empty and whitespace-only strings to None."""
    if value is None:
        return None
    text = str(value).strip()
    return text or None


@dataclass(frozen=True)
class DateWindow:
    """Inclusive calendar date range."""

    start: dt.date
    end: dt.date

    @classmethod
    def trailing(cls, today: dt.date, days: int = 7) -> "DateWindow":
        """Window of `days` days ending on (and including) `today`."""
        return cls(start=today - dt.timedelta(days=days - 1), end=today)

    @property
    def days(self) -> int:
        return max(0, (self.end - self.start).days + 1)

    def contains(self, day: dt.date) -> bool:
        return self.start <= day <= self.end


class User(BaseModel):
    """A dashboard user, owned by the remote store."""

    model_config = ConfigDict(populate_by_name=True, frozen=True)

    id: int
    name: str
    image_url: str = Field(
        default="",
        validation_alias=AliasChoices("image_url", "imageUrl", "Image_Url"),
    )

    @field_validator("image_url", mode="before")
    @classmethod
    def normalize_image_url(cls, value: Any) -> str:
        return clean_text(value) or ""


class ProgressEntry(BaseModel):
    """One user's logged activities for a single calendar date."""

    model_config = ConfigDict(populate_by_name=True)

    id: Optional[int] = None
    user_id: int = Field(validation_alias=AliasChoices("user_id", "userId"))
    date: dt.date

    study: Optional[str] = None
    exercise: Optional[str] = None
    meditation: Optional[str] = None
    english_practice: Optional[str] = Field(
        default=None, validation_alias=AliasChoices("english_practice", "englishPractice")
    )
    linkedin_post: Optional[str] = Field(
        default=None, validation_alias=AliasChoices("linkedin_post", "linkedinPost")
    )
    summary: Optional[str] = None
    test_link: Optional[str] = Field(
        default=None, validation_alias=AliasChoices("test_link", "testLink")
    )
    water_intake_liters: Optional[float] = Field(
        default=None,
        validation_alias=AliasChoices("water_intake_liters", "waterIntakeLiters", "water_intake"),
    )
    total_sleep_hours: Optional[float] = Field(
        default=None, validation_alias=AliasChoices("total_sleep_hours", "totalSleepHours")
    )
    first_bath: Optional[bool] = Field(
        default=None, validation_alias=AliasChoices("first_bath", "firstBath")
    )
    second_bath: Optional[bool] = Field(
        default=None, validation_alias=AliasChoices("second_bath", "secondBath")
    )
    walk_10k_steps: StepStatus = Field(
        default=StepStatus.NOT_TRACKED,
        validation_alias=AliasChoices("walk_10k_steps", "walk10kSteps"),
    )

    @field_validator("date", mode="before")
    @classmethod
    def normalize_date(cls, value: Any) -> dt.date:
        return parse_date(value)

    @field_validator(*TEXT_FIELDS, mode="before")
    @classmethod
    def normalize_text(cls, value: Any) -> Optional[str]:
        return clean_text(value)

    @field_validator("water_intake_liters", "total_sleep_hours", mode="before")
    @classmethod
    def blank_number_is_absent(cls, value: Any) -> Any:
        if isinstance(value, str) and not value.strip():
            return None
        return value

    @field_validator("walk_10k_steps", mode="before")
    @classmethod
    def normalize_steps(cls, value: Any) -> StepStatus:
        return StepStatus.parse(value)


class NormalizedEntry(BaseModel):
    """Validated form submission, ready to be sent to the store."""

    model_config = ConfigDict(frozen=True)

    date: dt.date
    study: Optional[str] = None
    exercise: Optional[str] = None
    meditation: Optional[str] = None
    english_practice: Optional[str] = None
    linkedin_post: Optional[str] = None
    summary: Optional[str] = None
    test_link: Optional[str] = None
    water_intake_liters: Optional[float] = None
    total_sleep_hours: Optional[float] = None
    first_bath: bool = False
    second_bath: bool = False
    walk_10k_steps: StepStatus = StepStatus.NOT_TRACKED

    def to_payload(self, user_id: Optional[int] = None) -> dict:
        """Serialize to the store's JSON body, omitting absent fields."""
        payload = {
            "date": self.date.isoformat(),
            "study": self.study,
            "meditation": self.meditation,
            "water_intake": self.water_intake_liters,
            "exercise": self.exercise,
            "test_link": self.test_link,
            "linkedin_post": self.linkedin_post,
            "english_practice": self.english_practice,
            "total_sleep_hours": self.total_sleep_hours,
            "first_bath": self.first_bath,
            "second_bath": self.second_bath,
            "walk_10k_steps": self.walk_10k_steps.value,
            "summary": self.summary,
        }
        if user_id is not None:
            payload["userId"] = user_id
        return {key: value for key, value in payload.items() if value is not None}

    def to_entry(self, user_id: int, entry_id: Optional[int] = None) -> ProgressEntry:
        return ProgressEntry(id=entry_id, user_id=user_id, **self.model_dump())


class WeeklyAggregate(BaseModel):
    """Weekly roll-up of one user's entries."""

    model_config = ConfigDict(populate_by_name=True)

    user_id: Optional[int] = Field(default=None, validation_alias=AliasChoices("user_id", "userId"))
    window_start: dt.date
    window_end: dt.date
    total_steps: int = Field(ge=0, validation_alias=AliasChoices("total_steps", "totalSteps"))
    total_water_liters: float = Field(
        ge=0,
        validation_alias=AliasChoices("total_water_liters", "totalWaterLiters", "totalWater"),
    )
    total_sleep_hours: float = Field(
        ge=0,
        validation_alias=AliasChoices("total_sleep_hours", "totalSleepHours", "totalSleep"),
    )
    progress_percentage: float = Field(
        ge=0,
        le=100,
        validation_alias=AliasChoices("progress_percentage", "progressPercentage"),
    )

    @property
    def window(self) -> DateWindow:
        return DateWindow(self.window_start, self.window_end)
