"""
Auto-Close API

FastAPI application with:
- Manual "Run Now" sweep
- Dry-run preview
- Rule listing and activation toggle
- Hourly scheduled sweep (app lifespan)
"""

from contextlib import asynccontextmanager
from typing import List, Optional

from fastapi import Depends, FastAPI, HTTPException, Request, status
from fastapi.middleware.cors import CORSMiddleware
from pydantic import BaseModel

from .. import __version__
from ..config import EngineSettings
from ..errors import RuleNotFoundError
from ..logging_config import configure_logging
from ..models import AutoCloseRule, EngineResult, PreviewResult
from ..services import AutoCloseEngine, AutoCloseScheduler


# =============================================================================
# APP SETUP
# =============================================================================

def create_app(
    settings: Optional[EngineSettings] = None,
    engine: Optional[AutoCloseEngine] = None,
) -> FastAPI:
    """
    Build the API around one engine.

    The engine is created in the lifespan from settings unless one is
    passed in (tests, embedding).
    """
    settings = settings or EngineSettings.from_env()

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        configure_logging(settings.log_level)
        app.state.engine = engine or AutoCloseEngine.from_settings(settings)
        app.state.scheduler = None
        if settings.schedule_enabled:
            app.state.scheduler = AutoCloseScheduler(
                app.state.engine,
                interval_seconds=settings.schedule_interval_seconds,
            )
            app.state.scheduler.start()
        try:
            yield
        finally:
            if app.state.scheduler is not None:
                await app.state.scheduler.stop()

    app = FastAPI(
        title="Auto-Close Engine",
        description="Rule-driven closure of stale helpdesk tickets",
        version=__version__,
        lifespan=lifespan,
    )

    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],  # Configure for production
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    _register_routes(app)
    return app


def get_engine(request: Request) -> AutoCloseEngine:
    return request.app.state.engine


# =============================================================================
# REQUEST/RESPONSE MODELS
# =============================================================================

class SetRuleActiveRequest(BaseModel):
    is_active: bool


# =============================================================================
# ROUTES
# =============================================================================

def _register_routes(app: FastAPI) -> None:

    @app.get("/health")
    async def health_check():
        return {
            "status": "healthy",
            "service": "autoclose-engine",
            "version": __version__,
        }

    @app.post("/auto-close/run", response_model=EngineResult)
    async def run_now(engine: AutoCloseEngine = Depends(get_engine)):
        """
        Run all active rules now.

        Always answers 200 with counts; failures are listed in errors.
        """
        return await engine.process()

    @app.get("/auto-close/preview", response_model=PreviewResult)
    async def preview(engine: AutoCloseEngine = Depends(get_engine)):
        """
        What a sweep would close right now. Read-only.
        """
        return await engine.preview()

    @app.get("/auto-close/rules", response_model=List[AutoCloseRule])
    async def list_rules(engine: AutoCloseEngine = Depends(get_engine)):
        return await engine.list_rules()

    @app.post("/auto-close/rules/{rule_id}/active", response_model=AutoCloseRule)
    async def set_rule_active(
        rule_id: str,
        request: SetRuleActiveRequest,
        engine: AutoCloseEngine = Depends(get_engine),
    ):
        """
        Enable or disable a rule.
        """
        try:
            return await engine.set_rule_active(rule_id, request.is_active)
        except RuleNotFoundError as e:
            raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(e))


app = create_app()


# =============================================================================
# RUN
# =============================================================================

if __name__ == "__main__":
    import uvicorn
    uvicorn.run(app, host="0.0.0.0", port=8000)
