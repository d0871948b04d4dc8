from __future__ import annotations

from decimal import Decimal

import pytest

from nachweis_client.grid import ActivityGrid, parse_hours
from nachweis_client.models import Activity, Weekday


def test_monday_total_counts_only_entered_hours():
    grid = ActivityGrid()
    for slot, hours in enumerate(["2", "1.5", "", "", ""], start=1):
        grid.set_hours("mo", slot, hours)
    assert grid.day_total_text(Weekday.MONDAY) == "3.5"

    for slot in range(1, 6):
        grid.clear_slot(Weekday.MONDAY, slot)
    assert grid.day_total_text("mo") == ""
    assert grid.day_total(Weekday.MONDAY) is None


def test_zero_hours_differs_from_nothing_entered():
    grid = ActivityGrid()
    grid.set_hours(Weekday.FRIDAY, 1, "0")
    assert grid.day_total_text(Weekday.FRIDAY) == "0.0"
    assert grid.grand_total() == "0.0"
    assert ActivityGrid().grand_total() == ""


@pytest.mark.parametrize("value", ["abc", "-1", "", None, "nan", "inf", "1000", "1e30"])
def test_unusable_hours_do_not_count(value):
    grid = ActivityGrid()
    grid.set_hours(Weekday.TUESDAY, 1, "2")
    grid.set_hours(Weekday.TUESDAY, 2, value)
    assert grid.day_total(Weekday.TUESDAY) == Decimal("2")


def test_parse_hours_accepts_decimal_comma():
    assert parse_hours("1,5") == Decimal("1.5")
    assert parse_hours(4) == Decimal("4")


def test_grand_total_is_sum_of_day_totals():
    grid = ActivityGrid()
    grid.set_hours("mo", 1, "2.25")
    grid.set_hours("mo", 2, "1.5")
    grid.set_hours("we", 1, "8")
    grid.set_hours("sa", 3, "0.5")
    day_sum = sum(
        (grid.day_total(day) for day in Weekday if grid.day_total(day) is not None),
        Decimal("0"),
    )
    assert abs(Decimal(grid.grand_total()) - day_sum) <= Decimal("0.05")
    assert grid.grand_total() == "12.3"


def test_weekend_has_three_slots():
    grid = ActivityGrid()
    grid.set_hours(Weekday.SUNDAY, 3, "1")
    with pytest.raises(ValueError):
        grid.set_hours(Weekday.SUNDAY, 4, "1")
    with pytest.raises(ValueError):
        grid.slot(Weekday.MONDAY, 6)


def test_incomplete_slots_are_not_serialized():
    grid = ActivityGrid()
    grid.set_slot("mo", 1, "Entwickeln", "Frontend", "4")
    grid.set_slot("mo", 2, "", "Ohne Bereich", "2")
    grid.set_slot("mo", 3, "Meeting", "", "1")
    grid.set_slot("tu", 1, "Schule", "Berufsschulunterricht", "")
    grid.set_slot("tu", 2, "Schule", "Prüfungsvorbereitung", "viel")

    activities = grid.to_activities()
    assert activities == [
        Activity(day=Weekday.MONDAY, slot=1, section="Entwickeln", description="Frontend", hours=Decimal("4"))
    ]
    # Incomplete slots still count towards the totals.
    assert grid.day_total_text("mo") == "7.0"


def test_changing_section_clears_foreign_description():
    grid = ActivityGrid()
    grid.set_slot("mo", 1, "Entwickeln", "API-Integration und Testing", "3")

    grid.set_section("mo", 1, "Meeting")
    assert grid.slot("mo", 1).description == ""

    grid.set_description("mo", 1, "Sprint Planning Meeting")
    grid.set_section("mo", 1, "Meeting")
    assert grid.slot("mo", 1).description == "Sprint Planning Meeting"

    grid.set_description("mo", 1, "Eigener Text")
    assert grid.slot("mo", 1).description == "Eigener Text"
    assert "Krank" in grid.suggestions("Sonstiges")


def test_from_activities_round_trip():
    activities = [
        Activity(day=Weekday.THURSDAY, slot=2, section="Designen", description="Wireframing und Prototyping", hours=Decimal("2.5")),
        Activity(day=Weekday.MONDAY, slot=1, section="Entwickeln", description="Frontend", hours=Decimal("4.0")),
    ]
    grid = ActivityGrid.from_activities(activities)
    assert grid.to_activities() == sorted(activities, key=lambda item: list(Weekday).index(item.day))
    values = grid.form_values()
    assert values["mo_Sec_1"] == "Entwickeln"
    assert values["th_Time_2"] == "2.5"
    assert values["mo_Total"] == "4.0"
    assert values["tu_Total"] == ""
    assert values["Total"] == "6.5"


def test_hours_are_rounded_to_storable_precision():
    assert parse_hours("0.333") == Decimal("0.33")
    assert parse_hours("0,005") == Decimal("0.01")
    assert parse_hours("999.99") == Decimal("999.99")
    assert parse_hours("999.995") is None

    grid = ActivityGrid()
    grid.set_slot("mo", 1, "Entwickeln", "Frontend", "4")
    grid.set_slot("tu", 1, "Meeting", "Daily Standup mit Team", "0.333")
    grid.set_slot("tu", 2, "Meeting", "Sprint Planning Meeting", "1000")

    assert [activity.hours for activity in grid.to_activities()] == [Decimal("4"), Decimal("0.33")]
    assert grid.grand_total() == "4.3"


def test_clear_empties_every_slot():
    grid = ActivityGrid()
    grid.set_slot("mo", 1, "Entwickeln", "Frontend", "4")
    grid.set_slot("su", 3, "Sonstiges", "Urlaub", "8")

    grid.clear()

    assert grid.to_activities() == []
    assert grid.grand_total() == ""
    assert all(slot.is_empty for slot in grid.slots("mo"))
