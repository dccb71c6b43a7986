import logging
from contextlib import asynccontextmanager
from typing import Optional

import uvicorn
from fastapi import Depends, FastAPI, HTTPException, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError

from forecast_feedback import __version__
from forecast_feedback.auth import AuthenticatedUser, require_user
from forecast_feedback.clients.summarizer_client import ForecastSummarizer, build_summarizer
from forecast_feedback.config import Settings, create_engine_and_session_factory
from forecast_feedback.database import init_models
from forecast_feedback.database.repositories import UpsertOutcome
from forecast_feedback.errors import FeedbackError
from forecast_feedback.models import FeedbackRequest, FeedbackSubmitResponse, FeedbackSummaryResponse
from forecast_feedback.services import SummaryService

logger = logging.getLogger(__name__)

_UNSET = object()


def create_app(settings: Optional[Settings] = None, summarizer=_UNSET) -> FastAPI:
    """Build the application.

    The summarizer defaults to the OpenAI adapter when an API key is
    configured; pass None to force deterministic summaries or any object
    with the same generate()/label interface to replace it.
    """
    settings = settings or Settings.from_env()
    logging.basicConfig(
        level=settings.log_level,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s"
    )

    engine, session_factory = create_engine_and_session_factory(settings)
    if summarizer is _UNSET:
        summarizer = build_summarizer(settings)
    service = SummaryService(session_factory, summarizer)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        logger.info("Forecast feedback service starting...")
        await init_models(engine)
        logger.info("AI summaries %s", "enabled" if summarizer is not None else "disabled (deterministic only)")
        try:
            yield
        finally:
            logger.info("Forecast feedback service shutting down...")
            await service.wait_for_pending()
            if isinstance(summarizer, ForecastSummarizer):
                await summarizer.close()
            await engine.dispose()

    app = FastAPI(
        title="Forecast Feedback API",
        description="Crowd feedback on weather forecast accuracy with cached AI summaries",
        version=__version__,
        lifespan=lifespan
    )
    app.state.settings = settings
    app.state.engine = engine
    app.state.summary_service = service

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_allow_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    @app.exception_handler(RequestValidationError)
    async def validation_error_handler(request: Request, exc: RequestValidationError):
        # Wrongly typed fields answer 400 like any other invalid input
        problems = []
        for error in exc.errors():
            field = ".".join(str(part) for part in error.get("loc", ()) if part not in ("body", "query"))
            problems.append(f"{field}: {error.get('msg')}" if field else str(error.get("msg")))
        detail = "; ".join(problems) or "Invalid request"
        logger.warning("[FEEDBACK] Rejected malformed request to %s: %s", request.url.path, detail)
        return JSONResponse(status_code=400, content={"detail": detail})

    # --- API Endpoints ---

    @app.get("/")
    async def root():
        """Root endpoint providing API information."""
        return {
            "message": "Forecast Feedback API",
            "version": __version__,
            "endpoints": {
                "health": "/health",
                "submit_feedback": "/api/feedback",
                "feedback_summary": "/api/feedback/summary"
            }
        }

    @app.get("/health")
    async def health_check(request: Request):
        """Health check endpoint."""
        database_connected = True
        try:
            async with request.app.state.engine.connect() as conn:
                await conn.execute(text("SELECT 1"))
        except SQLAlchemyError as e:
            logger.error("[HEALTH] Database check failed: %s", e)
            database_connected = False

        return {
            "status": "healthy" if database_connected else "degraded",
            "databaseConnected": database_connected,
            "aiConfigured": request.app.state.summary_service.summarizer is not None
        }

    @app.post("/api/feedback", response_model=FeedbackSubmitResponse)
    async def submit_feedback(
        body: FeedbackRequest,
        request: Request,
        user: AuthenticatedUser = Depends(require_user)
    ):
        """Create or update the caller's feedback for a location and forecast hour."""
        try:
            result = await request.app.state.summary_service.submit_feedback(
                user_id=user.id,
                display_name=user.display_name,
                request=body
            )
        except FeedbackError as e:
            raise HTTPException(status_code=400, detail=str(e))
        except SQLAlchemyError:
            logger.exception("[FEEDBACK] Storage error while submitting feedback")
            raise HTTPException(status_code=500, detail="Internal server error")

        if result.outcome == UpsertOutcome.CONFLICT_UNRESOLVED:
            raise HTTPException(
                status_code=409,
                detail="Feedback for this forecast hour could not be saved, please retry."
            )

        return FeedbackSubmitResponse(
            ok=True,
            feedbackId=result.record.id,
            outcome=result.outcome.value
        )

    @app.get("/api/feedback/summary", response_model=FeedbackSummaryResponse)
    async def feedback_summary(
        request: Request,
        locationName: Optional[str] = None,
        forecastTime: Optional[str] = None
    ):
        """Stats, comments and summary for the hour containing forecastTime."""
        try:
            return await request.app.state.summary_service.get_or_build_summary(locationName, forecastTime)
        except FeedbackError as e:
            raise HTTPException(status_code=400, detail=str(e))
        except SQLAlchemyError:
            logger.exception("[SUMMARY] Storage error while building summary")
            raise HTTPException(status_code=500, detail="Internal server error")

    return app


if __name__ == "__main__":
    uvicorn.run(
        "forecast_feedback.main:create_app",
        factory=True,
        host="0.0.0.0",
        port=Settings.from_env().port
    )
