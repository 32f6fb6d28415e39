# services/plan_sessions.py
import asyncio
import logging
from collections import OrderedDict
from dataclasses import dataclass
from typing import Callable, Dict, Tuple

from immersive_planner.core.config import PLAN_SESSION_LIMIT
from immersive_planner.services.field_interpreter import FieldUpdateInterpreter
from immersive_planner.services.lesson_store import LessonPlanStore
from immersive_planner.services.plan_state import PlanStateManager
from immersive_planner.services.session_store import (
    InMemorySessionStore,
    JsonFileSessionStore,
    SessionResumeStore,
)

logger = logging.getLogger(__name__)
logger.setLevel(logging.INFO)


@dataclass
class PlanSession:
    manager: PlanStateManager
    interpreter: FieldUpdateInterpreter


def session_store_factory(directory: str = "") -> Callable[[str], SessionResumeStore]:
    """Per-client resume stores: JSON files under `directory`, or memory when unset."""
    if directory:
        return lambda client_id: JsonFileSessionStore.for_client(directory, client_id)

    stores: Dict[str, InMemorySessionStore] = {}

    def _memory(client_id: str) -> SessionResumeStore:
        return stores.setdefault(client_id, InMemorySessionStore())

    return _memory


class PlanSessionRegistry:
    """
    One plan session per (user, client), least recently used first out.

    The resume store belongs to the client, not the user: when a different user
    signs in on the same browser the stored plan id is found but fails the owner
    check, and a fresh plan is created for the new user.

    At most `max_sessions` sessions are kept. An evicted session is rebuilt on
    its next request by resuming the plan recorded in its client's resume
    store. Unsaved edits are saved first; sessions with a save or a chat
    request in flight are not evicted.
    """

    def __init__(
        self,
        store: LessonPlanStore,
        tools,
        session_stores: Callable[[str], SessionResumeStore],
        max_sessions: int = PLAN_SESSION_LIMIT,
    ):
        self.store = store
        self.tools = tools
        self.session_stores = session_stores
        self.max_sessions = max(1, max_sessions)
        self._sessions: "OrderedDict[Tuple[str, str], PlanSession]" = OrderedDict()
        self._locks: Dict[Tuple[str, str], asyncio.Lock] = {}

    def __len__(self) -> int:
        return len(self._sessions)

    async def get(self, user_id: str, client_id: str) -> PlanSession:
        key = (user_id, client_id)
        while key not in self._sessions:
            lock = self._locks.setdefault(key, asyncio.Lock())
            try:
                async with lock:
                    if key not in self._sessions:
                        manager = PlanStateManager(self.store, self.session_stores(client_id))
                        await manager.load(user_id)
                        self._sessions[key] = PlanSession(manager, FieldUpdateInterpreter(manager, self.tools))
                        logger.info(f"Opened plan session for user {user_id} on client {client_id}")
                        await self._evict(keep=key)
            finally:
                if self._locks.get(key) is lock and not lock.locked():
                    del self._locks[key]
        self._sessions.move_to_end(key)
        return self._sessions[key]

    async def _evict(self, keep: Tuple[str, str]) -> None:
        for key in list(self._sessions):
            if len(self._sessions) <= self.max_sessions:
                return
            session = self._sessions.get(key)
            if key == keep or session is None:
                continue
            if session.manager.saving or session.interpreter.pending:
                continue
            if session.manager.dirty and not await session.manager.save():
                logger.warning(f"Evicting plan session {key} with unsaved changes")
            self._sessions.pop(key, None)
            logger.info(f"Evicted plan session for user {key[0]} on client {key[1]}")
