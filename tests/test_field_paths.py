import pytest

from immersive_planner.models.lesson_plan_model import LessonSections, Phase
from immersive_planner.utils.field_paths import (
    FieldPathError,
    ScalarFieldUpdate,
    SectionFieldUpdate,
    parse_field_update,
    section_field_labels,
    section_field_values,
)


def test_scalar_field():
    assert parse_field_update("topic", "Genetics") == ScalarFieldUpdate(name="topic", value="Genetics")


@pytest.mark.parametrize(
    "path, expected",
    [
        ("opening.0.content", SectionFieldUpdate(Phase.opening, 0, "content", "v")),
        ("main.2.screens.screen3", SectionFieldUpdate(Phase.main, 2, "screens.screen3", "v")),
        ("summary.1.spaceUsage", SectionFieldUpdate(Phase.summary, 1, "spaceUsage", "v")),
    ],
)
def test_section_paths(path, expected):
    assert parse_field_update(path, "v") == expected


@pytest.mark.parametrize(
    "path",
    ["", "title", "closing.0.content", "main.x.content", "main.-1.content", "main.0.screens.screen4", "main.0"],
)
def test_invalid_paths(path):
    with pytest.raises(FieldPathError):
        parse_field_update(path, "v")


def test_labels_and_values_cover_existing_sections():
    sections = LessonSections.model_validate(
        {"opening": [{"content": "hello", "screens": {"screen2": "padlet"}, "spaceUsage": "groups"}]}
    )

    labels = section_field_labels(sections)
    values = section_field_values(sections)

    assert set(labels) == set(values)
    assert len(labels) == 5
    assert labels["opening.0.content"] == "פתיחה - פעילות 1 - תוכן"
    assert labels["opening.0.screens.screen2"] == "פתיחה - פעילות 1 - מסך 2"
    assert values["opening.0.content"] == "hello"
    assert values["opening.0.screens.screen2"] == "padlet"
    assert values["opening.0.screens.screen1"] == ""
    assert values["opening.0.spaceUsage"] == "groups"
