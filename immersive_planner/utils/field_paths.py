# utils/field_paths.py
"""
Field identifiers used by the assistant.

Top-level scalar fields are addressed by name ("topic"); section fields by a
dotted path "<phase>.<index>.<field>" such as "opening.0.content" or
"main.1.screens.screen2". parse_field_update turns an identifier into a
ScalarFieldUpdate or a SectionFieldUpdate so that callers never split paths
themselves.
"""
from dataclasses import dataclass
from typing import Dict, Union

from immersive_planner.models.lesson_plan_model import (
    SCALAR_FIELDS,
    SCREEN_SLOTS,
    LessonSections,
    Phase,
)

PHASE_LABELS = {
    Phase.opening: "פתיחה",
    Phase.main: "גוף השיעור",
    Phase.summary: "סיכום",
}

SECTION_FIELD_LABELS = {
    "content": "תוכן",
    "screens.screen1": "מסך 1",
    "screens.screen2": "מסך 2",
    "screens.screen3": "מסך 3",
    "spaceUsage": "ארגון הלומדים",
}


class FieldPathError(ValueError):
    pass


@dataclass(frozen=True)
class ScalarFieldUpdate:
    name: str
    value: str


@dataclass(frozen=True)
class SectionFieldUpdate:
    phase: Phase
    index: int
    field: str  # "content", "spaceUsage" or "screens.screenN"
    value: str


FieldUpdate = Union[ScalarFieldUpdate, SectionFieldUpdate]


def parse_field_update(path: str, value: str) -> FieldUpdate:
    if path in SCALAR_FIELDS:
        return ScalarFieldUpdate(name=path, value=value)

    parts = path.split(".", 2)
    if len(parts) != 3:
        raise FieldPathError(f"Unrecognized field identifier: {path!r}")
    phase_name, index_str, field = parts

    try:
        phase = Phase(phase_name)
    except ValueError:
        raise FieldPathError(f"Unknown phase in field identifier: {path!r}")
    if not index_str.isdigit():
        raise FieldPathError(f"Section index must be a non-negative integer: {path!r}")
    if field not in SECTION_FIELD_LABELS:
        raise FieldPathError(f"Unknown section field in identifier: {path!r}")

    return SectionFieldUpdate(phase=phase, index=int(index_str), field=field, value=value)


def section_path(phase: Phase, index: int, field: str) -> str:
    return f"{Phase(phase).value}.{index}.{field}"


def section_field_labels(sections: LessonSections) -> Dict[str, str]:
    """Label every field of every existing section, e.g. 'פתיחה - פעילות 1 - תוכן'."""
    labels = {}
    for phase in Phase:
        for i, _ in enumerate(sections.phase(phase)):
            for field, field_label in SECTION_FIELD_LABELS.items():
                labels[section_path(phase, i, field)] = f"{PHASE_LABELS[phase]} - פעילות {i + 1} - {field_label}"
    return labels


def section_field_values(sections: LessonSections) -> Dict[str, str]:
    values = {}
    for phase in Phase:
        for i, section in enumerate(sections.phase(phase)):
            values[section_path(phase, i, "content")] = section.content
            for slot in SCREEN_SLOTS:
                values[section_path(phase, i, f"screens.{slot}")] = getattr(section.screens, slot)
            values[section_path(phase, i, "spaceUsage")] = section.spaceUsage
    return values
