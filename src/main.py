# main.py (project root)
import os
import logging
import uvicorn
from fastapi import FastAPI
from src.routers.user_router import router as user_router
from src.routers.post_router import router as post_router
from src.routers.media_router import router as media_router
from src.routers.workspace_router import router as workspace_router
from src.infrastructure.database import init_db
from src.infrastructure.timer import get_timer_service
from src.middleware.logging import RequestIdMiddleware
from src.tasks import register_tasks, recover_posts
import structlog

LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO").upper()


def configure_structlog():
    structlog.configure(
        processors=[
            structlog.contextvars.merge_contextvars,
            structlog.processors.add_log_level,
            structlog.processors.TimeStamper(fmt="iso"),
            structlog.processors.StackInfoRenderer(),
            structlog.processors.format_exc_info,
            structlog.processors.JSONRenderer()
        ],
        wrapper_class=structlog.make_filtering_bound_logger(getattr(logging, LOG_LEVEL, logging.INFO)),
        context_class=dict,
    )


configure_structlog()
logger = structlog.get_logger()

app = FastAPI(title="Social Scheduler")

app.add_middleware(RequestIdMiddleware)

app.include_router(user_router)
app.include_router(post_router)
app.include_router(media_router)
app.include_router(workspace_router)


@app.on_event("startup")
async def on_startup():
    await init_db()
    timer = get_timer_service()
    register_tasks(timer)
    await recover_posts(timer)
    await timer.start()
    logger.info("app_startup", timer=type(timer).__name__)


@app.on_event("shutdown")
async def on_shutdown():
    await get_timer_service().stop()
    logger.info("app_shutdown")


if __name__ == "__main__":
    uvicorn.run("src.main:app", host="0.0.0.0", port=int(os.getenv("PORT", 8000)), reload=True)
