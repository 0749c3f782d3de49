import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI

from .db import Base, engine, get_db
from .cleanup import purge_stale_checkpoints
from .settings import settings
from .routers import reading

logging.basicConfig(
	level=getattr(logging, settings.log_level.upper(), logging.INFO),
	format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
	# Initialize DB schema
	Base.metadata.create_all(bind=engine)
	# Best-effort cleanup of abandoned checkpoints at startup
	try:
		db = next(get_db())
		removed = purge_stale_checkpoints(db, settings.checkpoint_max_age_days)
		if removed:
			logger.info("Purged %d stale checkpoints", removed)
	except Exception as exc:
		logger.warning("Checkpoint cleanup failed: %s", exc)
	yield
	await reading.close_collaborators()


app = FastAPI(title="Reading Comprehension API", lifespan=lifespan)
app.include_router(reading.router)


@app.get("/info")
def root():
	return {
		"status": "ok",
		"gemini_configured": bool(settings.gemini_api_key),
		"grader_mode": settings.grader_mode,
		"grader_unavailable_policy": settings.grader_unavailable_policy,
	}
