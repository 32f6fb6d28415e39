# services/plan_export.py
from typing import List

from immersive_planner.models.lesson_plan_model import LessonPlan, LessonSection

PHASE_HEADINGS = (
    ("opening", "== פתיחה =="),
    ("main", "== גוף השיעור =="),
    ("summary", "== סיכום =="),
)


def _render_sections(sections: List[LessonSection]) -> str:
    text = ""
    for i, section in enumerate(sections, start=1):
        text += f"\nפעילות {i}:\n"
        text += f"תוכן: {section.content}\n"
        text += f"מסך 1: {section.screens.screen1}\n"
        text += f"מסך 2: {section.screens.screen2}\n"
        text += f"מסך 3: {section.screens.screen3}\n"
        text += f"ארגון הלומדים: {section.spaceUsage}\n"
    return text


def render_lesson_plan_text(plan: LessonPlan) -> str:
    """
    Render the plan as the plain-text export.

    The layout is fixed: title, four metadata lines, the two goal blocks,
    then one block per phase with its activities numbered from 1. The output
    depends only on the plan, so identical plans export to identical text.
    """
    text = f"תכנית שיעור: {plan.topic}\n\n"
    text += f"זמן כולל: {plan.duration}\n"
    text += f"שכבת גיל: {plan.gradeLevel}\n"
    text += f"ידע קודם: {plan.priorKnowledge}\n"
    text += f"מיקום בתוכן: {plan.position}\n\n"
    text += f"מטרות ברמת התוכן:\n{plan.contentGoals}\n\n"
    text += f"מטרות ברמת המיומנויות:\n{plan.skillGoals}\n\n"

    for n, (phase, heading) in enumerate(PHASE_HEADINGS):
        text += ("\n" if n else "") + heading + "\n"
        text += _render_sections(plan.sections.phase(phase))

    return text


def export_filename(plan: LessonPlan) -> str:
    return f"תכנית_שיעור_{plan.topic or 'חדש'}.txt"
