from contextlib import asynccontextmanager

from fastapi import FastAPI

from chronicle.config import settings
from chronicle.logging_config import configure_logging
from chronicle.modules.arc.router import router as arc_router
from chronicle.modules.progress.router import router as progress_router
from chronicle.modules.reconcile.router import router as reconcile_router
from chronicle.modules.scan.router import router as scan_router


@asynccontextmanager
async def _lifespan(_app: FastAPI):
    configure_logging(level=settings.log_level)
    yield


app = FastAPI(title="Chronicle Narrative Tracker", lifespan=_lifespan)


@app.get("/health")
async def health() -> dict[str, str]:
    return {"status": "ok"}


app.include_router(reconcile_router)
app.include_router(scan_router)
app.include_router(arc_router)
app.include_router(progress_router)
