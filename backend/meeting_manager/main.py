from __future__ import annotations

from typing import Optional

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from sqlalchemy.engine import Engine
import logging
from logging.handlers import RotatingFileHandler

from meeting_manager.config import Settings
from meeting_manager.models.base import build_engine, init_db
from meeting_manager.api.meetings import router as meetings_router
from meeting_manager.api.scheduler import router as scheduler_router
from meeting_manager.repositories.scheduling import session_store_scope
from meeting_manager.services.recurrence_scheduler import RecurrenceScheduler, SchedulerRunner


def _configure_logging(settings: Settings) -> None:
    # Minimal structured logging to local file
    log_file = settings.logs_dir / "backend.log"
    handler = RotatingFileHandler(str(log_file), maxBytes=5_000_000, backupCount=2)
    formatter = logging.Formatter(
        fmt='%(asctime)s %(levelname)s %(name)s %(message)s'
    )
    handler.setFormatter(formatter)
    root = logging.getLogger()
    if not any(isinstance(h, RotatingFileHandler) for h in root.handlers):
        root.addHandler(handler)
    root.setLevel(logging.INFO)


def create_app(settings: Optional[Settings] = None, engine: Optional[Engine] = None) -> FastAPI:
    settings = settings or Settings()
    engine = engine or build_engine(settings.resolved_database_url())

    app = FastAPI(title="Meeting Manager Backend", version="0.1.0")
    app.state.settings = settings
    app.state.engine = engine
    app.state.recurrence_scheduler = RecurrenceScheduler(
        session_store_scope(engine), timezone=settings.scheduler_timezone
    )
    app.state.scheduler_runner = None

    app.add_middleware(
        CORSMiddleware,
        allow_origins=[
            "http://localhost:5173",
            "http://127.0.0.1:5173",
        ],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    @app.on_event("startup")
    def _startup() -> None:
        settings.ensure_dirs()
        try:
            _configure_logging(settings)
        except OSError:
            logging.getLogger("meeting_manager").warning("File logging unavailable in %s", settings.logs_dir)
        init_db(engine)

        if settings.scheduler_enabled:
            runner = SchedulerRunner(
                app.state.recurrence_scheduler,
                interval_seconds=settings.scheduler_interval_seconds,
                timezone=settings.scheduler_timezone,
                run_on_start=settings.scheduler_run_on_startup,
            )
            runner.start()
            app.state.scheduler_runner = runner

    @app.on_event("shutdown")
    def _shutdown() -> None:
        runner = app.state.scheduler_runner
        if runner is not None:
            runner.stop()
            app.state.scheduler_runner = None

    @app.get("/healthz")
    def healthz() -> dict[str, object]:
        runner = app.state.scheduler_runner
        return {"status": "ok", "scheduler_running": bool(runner and runner.running)}

    app.include_router(meetings_router)
    app.include_router(scheduler_router)

    @app.exception_handler(Exception)
    async def _unhandled_exception_handler(request: Request, exc: Exception):  # type: ignore[override]
        logging.getLogger("meeting_manager").exception("Unhandled exception")
        return JSONResponse(status_code=500, content={"error": str(exc)})

    return app


if __name__ == "__main__":
    import argparse
    import uvicorn

    parser = argparse.ArgumentParser(description="Meeting Manager Backend Server")
    parser.add_argument("--host", default="127.0.0.1", help="Host to bind to")
    parser.add_argument("--port", type=int, default=8000, help="Port to bind to")
    parser.add_argument("--reload", action="store_true", help="Enable auto-reload (dev only)")

    args = parser.parse_args()

    uvicorn.run(
        "meeting_manager.main:create_app" if args.reload else create_app(),
        host=args.host,
        port=args.port,
        reload=args.reload,
        factory=args.reload,
    )
