# services/lesson_store.py
"""
Lesson plan persistence.

Responsibilities:
- create_lesson_plan(fields) -> LessonPlan   (store assigns id and timestamps)
- get_lesson_plan(id) -> LessonPlan | None
- update_lesson_plan(id, fields)             (partial update: only supplied fields change)

Two implementations share the same async interface:
- SupabaseLessonPlanStore: the hosted document store (table `lesson_plans`).
- InMemoryLessonPlanStore: dict-backed, for local development and tests.
"""

import asyncio
import copy
import logging
import uuid
from datetime import datetime, timezone
from typing import Any, Dict, Optional, Protocol

from pydantic import ValidationError
from supabase import Client, create_client

from immersive_planner.core.config import LESSON_PLANS_TABLE, SUPABASE_KEY, SUPABASE_URL
from immersive_planner.models.lesson_plan_model import IDENTITY_FIELDS, LessonPlan

logger = logging.getLogger(__name__)
logger.setLevel(logging.INFO)


# -------------------------
# Exceptions
# -------------------------
class LessonStoreError(Exception):
    pass


class LessonPlanStore(Protocol):
    async def create_lesson_plan(self, fields: Dict[str, Any]) -> LessonPlan: ...

    async def get_lesson_plan(self, plan_id: str) -> Optional[LessonPlan]: ...

    async def update_lesson_plan(self, plan_id: str, fields: Dict[str, Any]) -> None: ...


def _writable(fields: Dict[str, Any]) -> Dict[str, Any]:
    """Drop identity/timestamp keys; those are owned by the store."""
    return {k: v for k, v in fields.items() if k not in IDENTITY_FIELDS}


# -------------------------
# Supabase
# -------------------------
def get_supabase_client() -> Client:
    if not SUPABASE_URL or not SUPABASE_KEY:
        raise ValueError("SUPABASE_URL and SUPABASE_KEY environment variables are required")
    return create_client(SUPABASE_URL, SUPABASE_KEY)


class SupabaseLessonPlanStore:
    """Lesson plans stored one row per plan; `sections` is a JSON column."""

    def __init__(self, client: Optional[Client] = None, table: str = LESSON_PLANS_TABLE):
        self.supabase = client or get_supabase_client()
        self.table = table

    async def create_lesson_plan(self, fields: Dict[str, Any]) -> LessonPlan:
        payload = _writable(fields)
        payload["userId"] = fields["userId"]
        try:
            result = await asyncio.to_thread(
                lambda: self.supabase.table(self.table).insert(payload).execute()
            )
        except Exception as e:
            logger.error(f"Error creating lesson plan: {e}")
            raise LessonStoreError(f"Failed to create lesson plan: {e}") from e
        if not result.data:
            raise LessonStoreError("Lesson plan insert returned no row")
        return self._to_plan(result.data[0])

    async def get_lesson_plan(self, plan_id: str) -> Optional[LessonPlan]:
        try:
            result = await asyncio.to_thread(
                lambda: self.supabase.table(self.table).select("*").eq("id", plan_id).limit(1).execute()
            )
        except Exception as e:
            logger.error(f"Error getting lesson plan {plan_id}: {e}")
            raise LessonStoreError(f"Failed to fetch lesson plan: {e}") from e
        return self._to_plan(result.data[0]) if result.data else None

    async def update_lesson_plan(self, plan_id: str, fields: Dict[str, Any]) -> None:
        payload = _writable(fields)
        payload["updated_at"] = datetime.now(timezone.utc).isoformat()
        try:
            await asyncio.to_thread(
                lambda: self.supabase.table(self.table).update(payload).eq("id", plan_id).execute()
            )
        except Exception as e:
            logger.error(f"Error updating lesson plan {plan_id}: {e}")
            raise LessonStoreError(f"Failed to update lesson plan: {e}") from e

    @staticmethod
    def _to_plan(row: Dict[str, Any]) -> LessonPlan:
        try:
            return LessonPlan.model_validate({**row, "id": str(row["id"])})
        except (KeyError, ValidationError) as e:
            raise LessonStoreError(f"Stored lesson plan is malformed: {e}") from e


# -------------------------
# In-memory
# -------------------------
class InMemoryLessonPlanStore:
    def __init__(self):
        self._rows: Dict[str, Dict[str, Any]] = {}
        self._lock = asyncio.Lock()

    async def create_lesson_plan(self, fields: Dict[str, Any]) -> LessonPlan:
        now = datetime.now(timezone.utc)
        row = copy.deepcopy(_writable(fields))
        row.update(id=str(uuid.uuid4()), userId=fields["userId"], created_at=now, updated_at=now)
        async with self._lock:
            self._rows[row["id"]] = row
        return LessonPlan.model_validate(copy.deepcopy(row))

    async def get_lesson_plan(self, plan_id: str) -> Optional[LessonPlan]:
        row = self._rows.get(plan_id)
        return LessonPlan.model_validate(copy.deepcopy(row)) if row else None

    async def update_lesson_plan(self, plan_id: str, fields: Dict[str, Any]) -> None:
        async with self._lock:
            row = self._rows.get(plan_id)
            if row is None:
                raise LessonStoreError(f"Lesson plan {plan_id} not found")
            row.update(copy.deepcopy(_writable(fields)))
            row["updated_at"] = datetime.now(timezone.utc)
