# services/plan_state.py
"""
Plan state manager.

Owns the active lesson plan, the wizard step and the save status for one
client session, and reconciles them with the lesson plan store:

- load(user_id)      resume the plan recorded in the session store, or create one
- set_field / update_sections / add_section / remove_section / apply_updates
                     in-memory edits, each marks the plan dirty
- save()             at most one update in flight; failures keep the plan dirty
- set_step / navigate
                     wizard step, kept in the session store only
- export_text()      plain-text rendering of the current plan
"""

import copy
import logging
from datetime import datetime, timezone
from typing import Callable, Iterable, Optional, Union

from pydantic import ValidationError

from immersive_planner.core import messages
from immersive_planner.models.lesson_plan_model import (
    SCALAR_FIELDS,
    LessonPlan,
    LessonSection,
    LessonSections,
    Phase,
    empty_plan_fields,
)
from immersive_planner.services.lesson_store import LessonPlanStore, LessonStoreError
from immersive_planner.services.plan_export import export_filename, render_lesson_plan_text
from immersive_planner.services.session_store import SessionKey, SessionResumeStore
from immersive_planner.utils.field_paths import FieldUpdate, ScalarFieldUpdate, SectionFieldUpdate

logger = logging.getLogger(__name__)
logger.setLevel(logging.INFO)

MIN_STEP = 1
MAX_STEP = 3

StepUpdater = Union[int, Callable[[int], int]]


# -------------------------
# Exceptions
# -------------------------
class PlanLoadError(Exception):
    pass


class PlanNotLoadedError(RuntimeError):
    pass


class UnknownFieldError(ValueError):
    pass


class InvalidFieldUpdateError(ValueError):
    pass


def _clamp_step(step: int) -> int:
    return max(MIN_STEP, min(MAX_STEP, step))


class PlanStateManager:
    def __init__(self, store: LessonPlanStore, session: SessionResumeStore):
        self.store = store
        self.session = session
        self.lesson_plan: Optional[LessonPlan] = None
        self.current_step = self._restore_step()
        self.loading = False
        self.saving = False
        self.dirty = False
        self.last_saved_at: Optional[datetime] = None
        self.error: Optional[str] = None
        self._revision = 0

    # -------------------------
    # Load
    # -------------------------
    async def load(self, user_id: str) -> LessonPlan:
        self.loading = True
        self.error = None
        try:
            plan = await self._resume(user_id)
            if plan is None:
                plan = await self._create(user_id)
            self.lesson_plan = plan
            self.dirty = False
            return plan
        finally:
            self.loading = False

    async def _resume(self, user_id: str) -> Optional[LessonPlan]:
        plan_id = self.session.get(SessionKey.lesson_plan_id)
        if not plan_id:
            return None
        try:
            plan = await self.store.get_lesson_plan(plan_id)
        except LessonStoreError as e:
            logger.warning(f"Could not fetch stored plan {plan_id}, creating a new one: {e}")
            return None
        if plan is None:
            logger.info(f"Stored plan {plan_id} no longer exists, creating a new one")
            return None
        if plan.userId != user_id:
            logger.warning(f"Stored plan {plan_id} belongs to another user, creating a new one")
            return None
        logger.info(f"Resumed lesson plan {plan_id} for user {user_id}")
        return plan

    async def _create(self, user_id: str) -> LessonPlan:
        try:
            plan = await self.store.create_lesson_plan(empty_plan_fields(user_id))
        except LessonStoreError as e:
            self.error = messages.LOAD_FAILED
            raise PlanLoadError(str(e)) from e
        self.session.set(SessionKey.lesson_plan_id, plan.id)
        self.set_step(MIN_STEP)
        logger.info(f"Created lesson plan {plan.id} for user {user_id}")
        return plan

    async def refresh(self) -> bool:
        """
        Re-read the plan from the store (e.g. when the browser tab regains focus).

        Skipped while there are unsaved edits or a save is in flight, so a
        refetch never discards local changes.
        """
        plan = self.require_plan()
        if self.dirty or self.saving:
            logger.info(f"Skipping refresh of {plan.id}: local changes pending")
            return False
        revision = self._revision
        saved_at = self.last_saved_at
        try:
            fresh = await self.store.get_lesson_plan(plan.id)
        except LessonStoreError as e:
            logger.warning(f"Refresh of {plan.id} failed: {e}")
            return False
        # an edit or a save may have landed while the fetch was out
        if self._revision != revision or self.last_saved_at != saved_at or self.saving:
            logger.info(f"Discarding stale refresh of {plan.id}")
            return False
        if fresh is None or fresh.userId != plan.userId:
            return False
        self.lesson_plan = fresh
        return True

    # -------------------------
    # Edits
    # -------------------------
    def require_plan(self) -> LessonPlan:
        if self.lesson_plan is None:
            raise PlanNotLoadedError("Lesson plan has not been loaded")
        return self.lesson_plan

    def _replace(self, plan: LessonPlan) -> None:
        self.lesson_plan = plan
        self.dirty = True
        self._revision += 1

    def set_field(self, name: str, value: str) -> None:
        if name not in SCALAR_FIELDS:
            raise UnknownFieldError(f"Unknown lesson plan field: {name}")
        plan = self.require_plan()
        self._replace(plan.model_copy(update={name: "" if value is None else str(value)}))

    def update_sections(self, new_sections) -> None:
        plan = self.require_plan()
        if isinstance(new_sections, LessonSections):
            sections = new_sections.model_copy(deep=True)
        else:
            sections = LessonSections.model_validate(new_sections)
        self._replace(plan.model_copy(update={"sections": sections}))

    def add_section(self, phase: Union[Phase, str]) -> None:
        plan = self.require_plan()
        sections = plan.sections.model_copy(deep=True)
        sections.phase(phase).append(LessonSection())
        self._replace(plan.model_copy(update={"sections": sections}))

    def remove_section(self, phase: Union[Phase, str], index: int) -> bool:
        plan = self.require_plan()
        current = plan.sections.phase(phase)
        if not 0 <= index < len(current):
            return False
        sections = plan.sections.model_copy(deep=True)
        kept = [s for i, s in enumerate(sections.phase(phase)) if i != index]
        setattr(sections, Phase(phase).value, kept)
        self._replace(plan.model_copy(update={"sections": sections}))
        return True

    def apply_updates(self, updates: Iterable[FieldUpdate]) -> None:
        """Apply a batch of field updates atomically: all of them or none."""
        plan = self.require_plan()
        data = copy.deepcopy(plan.model_dump())

        for update in updates:
            if isinstance(update, ScalarFieldUpdate):
                if update.name not in SCALAR_FIELDS:
                    raise UnknownFieldError(f"Unknown lesson plan field: {update.name}")
                data[update.name] = update.value
            elif isinstance(update, SectionFieldUpdate):
                phase_sections = data["sections"][Phase(update.phase).value]
                if not 0 <= update.index < len(phase_sections):
                    raise InvalidFieldUpdateError(
                        f"No section {update.index} in phase {Phase(update.phase).value}"
                    )
                target = phase_sections[update.index]
                if update.field.startswith("screens."):
                    target["screens"][update.field.split(".", 1)[1]] = update.value
                else:
                    target[update.field] = update.value
            else:
                raise InvalidFieldUpdateError(f"Unsupported update: {update!r}")

        try:
            updated = LessonPlan.model_validate(data)
        except ValidationError as e:
            raise InvalidFieldUpdateError(str(e)) from e
        self._replace(updated)

    # -------------------------
    # Save
    # -------------------------
    async def save(self) -> bool:
        if self.saving:
            logger.info("Save already in progress, ignoring duplicate request")
            return False
        plan = self.require_plan()

        self.saving = True
        revision = self._revision
        try:
            await self.store.update_lesson_plan(plan.id, plan.editable_payload())
        except LessonStoreError as e:
            logger.error(f"Saving lesson plan {plan.id} failed: {e}")
            self.error = messages.SAVE_FAILED
            return False
        finally:
            self.saving = False

        self.last_saved_at = datetime.now(timezone.utc)
        self.error = None
        if self._revision == revision:
            self.dirty = False
        logger.info(f"Saved lesson plan {plan.id}")
        return True

    # -------------------------
    # Wizard step
    # -------------------------
    def _restore_step(self) -> int:
        raw = self.session.get(SessionKey.current_step)
        try:
            return _clamp_step(int(raw))
        except (TypeError, ValueError):
            return MIN_STEP

    def set_step(self, updater: StepUpdater) -> int:
        new_step = updater(self.current_step) if callable(updater) else int(updater)
        self.current_step = _clamp_step(new_step)
        self.session.set(SessionKey.current_step, str(self.current_step))
        return self.current_step

    async def navigate(self, updater: StepUpdater) -> int:
        """Save, then move the wizard. A failed save is reported but does not block navigation."""
        await self.save()
        return self.set_step(updater)

    # -------------------------
    # Export
    # -------------------------
    def export_text(self) -> str:
        return render_lesson_plan_text(self.require_plan())

    def export_filename(self) -> str:
        return export_filename(self.require_plan())
