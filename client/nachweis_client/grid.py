"""Wochenraster eines Nachweises mit Tages- und Gesamtsummen.

Stunden werden wie im Formular als freier Text gehalten. Nicht lesbare, negative
oder zu große Werte zählen nicht zur Summe, lösen aber auch keinen Fehler aus.
Alles andere wird auf zwei Nachkommastellen gerundet, wie es der Server speichert.
"""

from __future__ import annotations

from dataclasses import dataclass
from decimal import ROUND_HALF_UP, Decimal, InvalidOperation
from typing import Dict, Iterable, List, Mapping, Optional, Sequence, Tuple, Union

from .models import Activity, Weekday

SECTION_TEMPLATES: Tuple[str, ...] = ("Entwickeln", "Designen", "Meeting", "Schule", "Sonstiges")

ACTIVITY_TEMPLATES: Dict[str, Tuple[str, ...]] = {
    "Entwickeln": (
        "Frontend-Entwicklung mit React/Next.js",
        "Backend-Entwicklung mit Java Spring Boot",
        "Datenbankdesign und SQL-Abfragen",
        "API-Integration und Testing",
        "Code-Review und Refactoring",
    ),
    "Designen": (
        "UI/UX-Konzepterstellung",
        "Wireframing und Prototyping",
        "Design System Entwicklung",
        "User Research und Testing",
        "Responsive Design Implementierung",
    ),
    "Meeting": (
        "Daily Standup mit Team",
        "Sprint Planning Meeting",
        "Retrospektive und Feedback",
        "Kundenpräsentation",
        "Technisches Review Meeting",
    ),
    "Schule": (
        "Berufsschulunterricht",
        "Prüfungsvorbereitung",
        "Projektarbeit für Schule",
        "Fachtheorie Softwareentwicklung",
        "Selbststudium und Recherche",
    ),
    "Sonstiges": (
        "Allgemeine Verwaltungstätigkeiten",
        "Teamkoordination",
        "Fortbildung und Schulungen",
        "Krank",
        "Urlaub",
    ),
}


@dataclass(frozen=True)
class DayMapping:
    prefix: str
    day: Weekday
    label: str
    max_slots: int


DAY_MAPPINGS: Tuple[DayMapping, ...] = (
    DayMapping("mo", Weekday.MONDAY, "Montag", 5),
    DayMapping("tu", Weekday.TUESDAY, "Dienstag", 5),
    DayMapping("we", Weekday.WEDNESDAY, "Mittwoch", 5),
    DayMapping("th", Weekday.THURSDAY, "Donnerstag", 5),
    DayMapping("fr", Weekday.FRIDAY, "Freitag", 5),
    DayMapping("sa", Weekday.SATURDAY, "Samstag", 3),
    DayMapping("su", Weekday.SUNDAY, "Sonntag", 3),
)

_BY_DAY = {mapping.day: mapping for mapping in DAY_MAPPINGS}
_BY_PREFIX = {mapping.prefix: mapping for mapping in DAY_MAPPINGS}
_ONE_PLACE = Decimal("0.1")
_HOURS_PLACES = Decimal("0.01")
# Largest value a Numeric(5,2) column holds.
MAX_HOURS = Decimal("999.99")

DayRef = Union[Weekday, str]


def parse_hours(value: object) -> Optional[Decimal]:
    """Return the hours rounded to two places, or ``None`` if unusable.

    Negative values and values the server cannot store count as unusable.
    """

    if value is None or isinstance(value, bool):
        return None
    text = str(value).strip().replace(",", ".")
    if not text:
        return None
    try:
        hours = Decimal(text)
        if not hours.is_finite() or hours < 0:
            return None
        hours = hours.quantize(_HOURS_PLACES, rounding=ROUND_HALF_UP)
    except InvalidOperation:
        return None
    if hours > MAX_HOURS:
        return None
    return hours


def format_total(value: Optional[Decimal]) -> str:
    if value is None:
        return ""
    return str(value.quantize(_ONE_PLACE, rounding=ROUND_HALF_UP))


def _mapping(day: DayRef) -> DayMapping:
    if isinstance(day, Weekday):
        return _BY_DAY[day]
    key = str(day)
    if key in _BY_PREFIX:
        return _BY_PREFIX[key]
    try:
        return _BY_DAY[Weekday(key.upper())]
    except ValueError:
        raise ValueError(f"Unbekannter Wochentag: {day!r}") from None


@dataclass(slots=True)
class Slot:
    section: str = ""
    description: str = ""
    hours: str = ""

    @property
    def parsed_hours(self) -> Optional[Decimal]:
        return parse_hours(self.hours)

    @property
    def is_complete(self) -> bool:
        return bool(self.section.strip() and self.description.strip() and self.parsed_hours is not None)

    @property
    def is_empty(self) -> bool:
        return not (self.section.strip() or self.description.strip() or str(self.hours).strip())


class ActivityGrid:
    """Fünf Slots für Montag bis Freitag, drei für das Wochenende."""

    def __init__(self, templates: Optional[Mapping[str, Sequence[str]]] = None) -> None:
        self.templates: Mapping[str, Sequence[str]] = templates if templates is not None else ACTIVITY_TEMPLATES
        self._slots: Dict[Weekday, List[Slot]] = {
            mapping.day: [Slot() for _ in range(mapping.max_slots)] for mapping in DAY_MAPPINGS
        }

    # ------------------------------------------------------------------
    # Slots
    # ------------------------------------------------------------------
    def slot(self, day: DayRef, slot: int) -> Slot:
        mapping = _mapping(day)
        if not 1 <= slot <= mapping.max_slots:
            raise ValueError(f"{mapping.label} hat nur {mapping.max_slots} Slots")
        return self._slots[mapping.day][slot - 1]

    def slots(self, day: DayRef) -> List[Slot]:
        return list(self._slots[_mapping(day).day])

    def set_slot(self, day: DayRef, slot: int, section: str, description: str, hours: object) -> Slot:
        target = self.slot(day, slot)
        target.section = section or ""
        target.description = description or ""
        target.hours = "" if hours is None else str(hours)
        return target

    def set_section(self, day: DayRef, slot: int, section: str) -> Slot:
        target = self.slot(day, slot)
        section = section or ""
        if section == target.section:
            return target
        target.section = section
        if target.description and target.description not in self.templates.get(section.strip(), ()):
            target.description = ""
        return target

    def set_description(self, day: DayRef, slot: int, description: str) -> Slot:
        target = self.slot(day, slot)
        target.description = description or ""
        return target

    def set_hours(self, day: DayRef, slot: int, hours: object) -> Slot:
        target = self.slot(day, slot)
        target.hours = "" if hours is None else str(hours)
        return target

    def clear_slot(self, day: DayRef, slot: int) -> None:
        target = self.slot(day, slot)
        target.section = ""
        target.description = ""
        target.hours = ""

    def clear(self) -> None:
        for slots in self._slots.values():
            for entry in slots:
                entry.section = entry.description = entry.hours = ""

    def suggestions(self, section: str) -> Sequence[str]:
        return self.templates.get((section or "").strip(), ())

    # ------------------------------------------------------------------
    # Summen
    # ------------------------------------------------------------------
    def day_total(self, day: DayRef) -> Optional[Decimal]:
        values = [entry.parsed_hours for entry in self._slots[_mapping(day).day]]
        present = [value for value in values if value is not None]
        if not present:
            return None
        return sum(present, Decimal("0"))

    def day_total_text(self, day: DayRef) -> str:
        return format_total(self.day_total(day))

    def grand_total(self) -> str:
        totals = [self.day_total(mapping.day) for mapping in DAY_MAPPINGS]
        present = [total for total in totals if total is not None]
        if not present:
            return ""
        return format_total(sum(present, Decimal("0")))

    # ------------------------------------------------------------------
    # Serialisierung
    # ------------------------------------------------------------------
    def to_activities(self) -> List[Activity]:
        activities: List[Activity] = []
        for mapping in DAY_MAPPINGS:
            for index, entry in enumerate(self._slots[mapping.day], start=1):
                if not entry.is_complete:
                    continue
                activities.append(
                    Activity(
                        day=mapping.day,
                        slot=index,
                        section=entry.section.strip(),
                        description=entry.description.strip(),
                        hours=entry.parsed_hours,
                    )
                )
        return activities

    @classmethod
    def from_activities(
        cls,
        activities: Iterable[Activity],
        templates: Optional[Mapping[str, Sequence[str]]] = None,
    ) -> "ActivityGrid":
        grid = cls(templates)
        for activity in activities:
            grid.set_slot(activity.day, activity.slot, activity.section, activity.description, activity.hours)
        return grid

    def form_values(self) -> Dict[str, str]:
        """Flat field map as used by the PDF form (``mo_Sec_1``, ``mo_1``, ``mo_Time_1``, ``mo_Total``)."""

        values: Dict[str, str] = {}
        for mapping in DAY_MAPPINGS:
            for index, entry in enumerate(self._slots[mapping.day], start=1):
                values[f"{mapping.prefix}_Sec_{index}"] = entry.section
                values[f"{mapping.prefix}_{index}"] = entry.description
                values[f"{mapping.prefix}_Time_{index}"] = entry.hours
            values[f"{mapping.prefix}_Total"] = self.day_total_text(mapping.day)
        values["Total"] = self.grand_total()
        return values


__all__ = [
    "ACTIVITY_TEMPLATES",
    "ActivityGrid",
    "DAY_MAPPINGS",
    "DayMapping",
    "SECTION_TEMPLATES",
    "Slot",
    "format_total",
    "parse_hours",
]
