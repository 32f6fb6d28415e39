from datetime import datetime
from typing import Optional
from urllib.parse import quote
import logging

from fastapi import APIRouter, Depends, HTTPException, status
from fastapi.responses import PlainTextResponse
from pydantic import BaseModel, model_validator

from immersive_planner.api.deps import get_plan_session
from immersive_planner.core import messages
from immersive_planner.models.lesson_plan_model import LessonPlan, LessonSections, Phase
from immersive_planner.services.plan_sessions import PlanSession
from immersive_planner.services.plan_state import PlanStateManager, UnknownFieldError

router = APIRouter()

# -------------------------
# Logging Configuration
# -------------------------
logger = logging.getLogger("lesson_plan_api")
logger.setLevel(logging.INFO)
if not logger.handlers:
    handler = logging.StreamHandler()
    formatter = logging.Formatter("%(asctime)s - %(levelname)s - %(name)s - %(message)s")
    handler.setFormatter(formatter)
    logger.addHandler(handler)


# -------------------------
# Request / Response Models
# -------------------------
class PlanStateResponse(BaseModel):
    plan: LessonPlan
    currentStep: int
    dirty: bool
    saving: bool
    lastSavedAt: Optional[datetime] = None
    error: Optional[str] = None

    @classmethod
    def from_manager(cls, manager: PlanStateManager) -> "PlanStateResponse":
        return cls(
            plan=manager.require_plan(),
            currentStep=manager.current_step,
            dirty=manager.dirty,
            saving=manager.saving,
            lastSavedAt=manager.last_saved_at,
            error=manager.error,
        )


class FieldChange(BaseModel):
    name: str
    value: str = ""


class StepChange(BaseModel):
    step: Optional[int] = None
    delta: Optional[int] = None

    @model_validator(mode="after")
    def exactly_one(self):
        if (self.step is None) == (self.delta is None):
            raise ValueError("Provide exactly one of 'step' or 'delta'")
        return self


# -------------------------
# Routes
# -------------------------
@router.get("/lesson-plan", response_model=PlanStateResponse, summary="Load or resume the active lesson plan")
async def get_lesson_plan(session: PlanSession = Depends(get_plan_session)):
    return PlanStateResponse.from_manager(session.manager)


@router.patch("/lesson-plan/fields", response_model=PlanStateResponse)
async def set_field(change: FieldChange, session: PlanSession = Depends(get_plan_session)):
    try:
        session.manager.set_field(change.name, change.value)
    except UnknownFieldError as e:
        raise HTTPException(status_code=status.HTTP_422_UNPROCESSABLE_ENTITY, detail=str(e))
    return PlanStateResponse.from_manager(session.manager)


@router.put("/lesson-plan/sections", response_model=PlanStateResponse)
async def replace_sections(sections: LessonSections, session: PlanSession = Depends(get_plan_session)):
    session.manager.update_sections(sections)
    return PlanStateResponse.from_manager(session.manager)


@router.post("/lesson-plan/sections/{phase}", response_model=PlanStateResponse)
async def add_section(phase: Phase, session: PlanSession = Depends(get_plan_session)):
    session.manager.add_section(phase)
    return PlanStateResponse.from_manager(session.manager)


@router.delete("/lesson-plan/sections/{phase}/{index}", response_model=PlanStateResponse)
async def remove_section(phase: Phase, index: int, session: PlanSession = Depends(get_plan_session)):
    session.manager.remove_section(phase, index)
    return PlanStateResponse.from_manager(session.manager)


@router.post("/lesson-plan/save", response_model=PlanStateResponse)
async def save_lesson_plan(session: PlanSession = Depends(get_plan_session)):
    manager = session.manager
    saved = await manager.save()
    # a save already in flight is not an error
    if not saved and not manager.saving:
        raise HTTPException(status_code=status.HTTP_502_BAD_GATEWAY, detail=manager.error or messages.SAVE_FAILED)
    return PlanStateResponse.from_manager(manager)


@router.put("/lesson-plan/step", response_model=PlanStateResponse, summary="Save, then move the wizard")
async def change_step(change: StepChange, session: PlanSession = Depends(get_plan_session)):
    if change.delta is not None:
        await session.manager.navigate(lambda step: step + change.delta)
    else:
        await session.manager.navigate(change.step)
    return PlanStateResponse.from_manager(session.manager)


@router.post("/lesson-plan/refresh", response_model=PlanStateResponse)
async def refresh_lesson_plan(session: PlanSession = Depends(get_plan_session)):
    await session.manager.refresh()
    return PlanStateResponse.from_manager(session.manager)


@router.get("/lesson-plan/export", response_class=PlainTextResponse, summary="Export the plan as a text file")
async def export_lesson_plan(session: PlanSession = Depends(get_plan_session)):
    manager = session.manager
    filename = manager.export_filename()
    logger.info(f"Exporting lesson plan {manager.require_plan().id}")
    return PlainTextResponse(
        manager.export_text(),
        media_type="text/plain; charset=utf-8",
        headers={"Content-Disposition": f"attachment; filename*=UTF-8''{quote(filename)}"},
    )
