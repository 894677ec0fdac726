from __future__ import annotations

from dataclasses import dataclass
from enum import Enum


class Section(str, Enum):
    MESS = "mess"
    GYM = "gym"
    SPORTS = "sports"


@dataclass(frozen=True)
class SectionAttribute:
    """Which student flag a checkpoint surfaces, and how it is labelled."""

    column: str
    true_label: str
    false_label: str

    def label(self, value: bool | None) -> str:
        return self.true_label if value else self.false_label


SECTION_ATTRIBUTES: dict[Section, SectionAttribute] = {
    Section.MESS: SectionAttribute("hostelite", "Hostelite", "Day Scholar"),
    Section.GYM: SectionAttribute("gym_active", "Subscribed", "Not Subscribed"),
    Section.SPORTS: SectionAttribute("indoor_sports_active", "Subscribed", "Not Subscribed"),
}


def section_attribute(section: Section) -> SectionAttribute:
    return SECTION_ATTRIBUTES[Section(section)]
