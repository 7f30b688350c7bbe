from contextlib import asynccontextmanager
from datetime import datetime, timezone
from typing import Optional

import structlog
import uvicorn
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from botter.application.api.route.message import router as message_router
from botter.application.bootstrap import build_orchestrator
from botter.domain.orchestration.core.conversation_orchestrator import ConversationOrchestrator
from botter.infrastructure.config.settings import Settings
from botter.infrastructure.observability.logging import setup_logging

logger = structlog.get_logger(__name__)


def create_app(
    settings: Optional[Settings] = None,
    orchestrator: Optional[ConversationOrchestrator] = None
) -> FastAPI:
    """Create the bot HTTP server; the orchestrator is built at startup unless given"""

    settings = settings or Settings()

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        if app.state.orchestrator is None:
            app.state.orchestrator = await build_orchestrator(settings)
        logger.info("Bot server started")
        yield
        logger.info("Bot server shutdown")

    app = FastAPI(title="Botter", lifespan=lifespan)

    # CORS middleware
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.state.settings = settings
    app.state.orchestrator = orchestrator

    app.include_router(message_router)

    @app.get("/health")
    async def health_check():
        """Health check endpoint"""
        current = app.state.orchestrator
        if current is None:
            return {"status": "starting", "timestamp": datetime.now(timezone.utc).isoformat()}

        return {
            "status": "healthy",
            "active_sessions": current.session_locks.active_sessions(),
            "metrics": current.metrics.get_metrics_summary(),
            "timestamp": datetime.now(timezone.utc).isoformat()
        }

    return app


def main():
    settings = Settings()
    setup_logging(settings.log_level, settings.log_format)
    logger.info("Starting server", host=settings.host, port=settings.port)
    uvicorn.run(create_app(settings), host=settings.host, port=settings.port)


if __name__ == "__main__":
    main()
