from datetime import date

import pytest

from multitracker.progress.validation import validate
from multitracker.store.errors import ValidationError
from multitracker.store.models import StepStatus


def form(**fields):
    return {"date": "2025-09-15", **fields}


def test_water_above_range_is_clamped_without_error() -> None:
    result = validate(form(waterIntake="12"))

    assert result.ok
    assert result.entry.water_intake_liters == 10


def test_sleep_is_clamped_to_day() -> None:
    result = validate(form(sleepHours=-3))
    assert result.entry.total_sleep_hours == 0

    result = validate(form(sleepHours="30"))
    assert result.entry.total_sleep_hours == 24


def test_slider_values_arrive_as_single_item_lists() -> None:
    result = validate(form(waterIntake=[2.5], sleepHours=[8]))

    assert result.entry.water_intake_liters == 2.5
    assert result.entry.total_sleep_hours == 8


def test_unparseable_number_is_a_field_error() -> None:
    result = validate(form(waterIntake="lots"))

    assert not result.ok
    assert [e.field for e in result.errors] == ["water_intake_liters"]
    assert result.entry.water_intake_liters is None


def test_steps_default_to_not_tracked() -> None:
    result = validate(form())

    assert result.ok
    assert result.entry.walk_10k_steps is StepStatus.NOT_TRACKED


def test_steps_accept_values_and_labels() -> None:
    assert validate(form(stepsAchievement="partial")).entry.walk_10k_steps is StepStatus.PARTIAL
    assert validate(form(walk10kSteps="Completed")).entry.walk_10k_steps is StepStatus.COMPLETED


def test_unknown_steps_status_is_a_field_error() -> None:
    result = validate(form(stepsAchievement="sometimes"))

    assert [e.field for e in result.errors] == ["walk_10k_steps"]
    assert result.entry.walk_10k_steps is StepStatus.NOT_TRACKED


@pytest.mark.parametrize("value", ["on", "true", "1", True, 1, "checked"])
def test_checkbox_truthy_values(value) -> None:
    assert validate(form(firstBath=value)).entry.first_bath is True


@pytest.mark.parametrize("value", [None, "", "off", "false", False, 0])
def test_checkbox_falsy_values(value) -> None:
    assert validate(form(secondBath=value)).entry.second_bath is False


def test_missing_checkbox_is_false() -> None:
    entry = validate(form()).entry

    assert entry.first_bath is False
    assert entry.second_bath is False


def test_text_is_trimmed_and_empty_is_absent() -> None:
    entry = validate(
        form(studyActivities="  Day 1 study session ", meditation="   ", dailySummary="")
    ).entry

    assert entry.study == "Day 1 study session"
    assert entry.meditation is None
    assert entry.summary is None


def test_test_link_must_be_a_url() -> None:
    assert validate(form(testLink="https://quiz.test/1")).entry.test_link == "https://quiz.test/1"

    result = validate(form(testLink="not a link"))
    assert [e.field for e in result.errors] == ["test_link"]
    assert result.entry.test_link is None


def test_missing_date_is_a_hard_failure() -> None:
    with pytest.raises(ValidationError) as excinfo:
        validate({"study": "x"})

    assert excinfo.value.errors[0].field == "date"


def test_unparseable_date_is_a_hard_failure() -> None:
    with pytest.raises(ValidationError):
        validate({"date": "yesterday"})


def test_non_mapping_input_is_a_hard_failure() -> None:
    with pytest.raises(ValidationError):
        validate(["date", "2025-09-15"])


def test_revalidating_normalized_output_is_stable() -> None:
    first = validate(
        form(
            studyActivities=" React ",
            waterIntake="12",
            sleepHours="7.5",
            firstBath="on",
            stepsAchievement="partial",
            testLink="https://quiz.test/1",
        )
    )
    assert first.ok

    again = validate(first.entry)
    assert again.ok
    assert again.entry == first.entry

    from_payload = validate(first.entry.to_payload(user_id=1))
    assert from_payload.ok
    assert from_payload.entry == first.entry


def test_payload_uses_store_keys_and_omits_absent_fields() -> None:
    entry = validate(form(waterIntake=3, stepsAchievement="completed")).entry

    assert entry.to_payload(user_id=7) == {
        "date": "2025-09-15",
        "water_intake": 3.0,
        "first_bath": False,
        "second_bath": False,
        "walk_10k_steps": "completed",
        "userId": 7,
    }
    assert entry.date == date(2025, 9, 15)
