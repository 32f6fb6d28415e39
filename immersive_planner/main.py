import asyncio
import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from immersive_planner.api import assistant, lesson_plan
from immersive_planner.core.config import CORS_ORIGINS, LESSON_STORE, SESSION_STATE_DIR
from immersive_planner.services.ai_providers import AIConfig, check_lmstudio_health, create_provider
from immersive_planner.services.ai_tools import AIToolServer
from immersive_planner.services.lesson_store import InMemoryLessonPlanStore, SupabaseLessonPlanStore
from immersive_planner.services.plan_sessions import PlanSessionRegistry, session_store_factory

logger = logging.getLogger(__name__)
logger.setLevel(logging.INFO)


def build_lesson_store():
    if LESSON_STORE == "supabase":
        return SupabaseLessonPlanStore()
    if LESSON_STORE == "memory":
        logger.warning("Using in-memory lesson store; plans are lost on restart")
        return InMemoryLessonPlanStore()
    raise ValueError(f"Unsupported LESSON_STORE: {LESSON_STORE}")


@asynccontextmanager
async def lifespan(app: FastAPI):
    ai_config = AIConfig()
    if ai_config.provider.strip().lower() == "lmstudio":
        # refuse traffic until the local model answers
        await asyncio.to_thread(check_lmstudio_health, ai_config)

    app.state.tool_server = AIToolServer(create_provider(ai_config))
    app.state.registry = PlanSessionRegistry(
        build_lesson_store(),
        app.state.tool_server,
        session_store_factory(SESSION_STATE_DIR),
    )
    yield


app = FastAPI(title="Immersive Room Lesson Planner", lifespan=lifespan)

# CORS settings
app.add_middleware(
    CORSMiddleware,
    allow_origins=CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Routers
app.include_router(lesson_plan.router, prefix="/api", tags=["lesson_plan"])
app.include_router(assistant.router, prefix="/api", tags=["assistant"])
@app.get("/")
def read_root():
    return {"message": "Immersive Room Lesson Planner API is running"}
