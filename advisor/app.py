from __future__ import annotations

import logging
import os
from contextlib import asynccontextmanager
from pathlib import Path
from typing import Optional

from dotenv import load_dotenv
from fastapi import FastAPI
from fastapi.concurrency import run_in_threadpool
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import HTMLResponse, JSONResponse

from .advisor_pipeline import WellnessAdvisorAgent
from .config import Settings, load_settings
from .gemini_client import GeminiClient, GenerationError
from .link_engine import LinkEngine, build_engine
from .models import ChatRequest, ChatResponse, ErrorResponse, HealthResponse

BASE_DIR = Path(__file__).resolve().parent

ENV_PATH = BASE_DIR / ".env"
if ENV_PATH.exists():
    load_dotenv(ENV_PATH, override=True)
else:
    load_dotenv()

log_level_name = os.getenv("LOG_LEVEL", "INFO").upper()
log_level = getattr(logging, log_level_name, logging.INFO)
if not logging.getLogger().handlers:
    logging.basicConfig(
        level=log_level,
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
    )

logging.getLogger("advisor").setLevel(log_level)
logger = logging.getLogger("advisor.app")

GENERIC_ERROR = "Something went wrong."


def create_app(
    settings: Optional[Settings] = None,
    gemini: Optional[GeminiClient] = None,
    engine: Optional[LinkEngine] = None,
) -> FastAPI:
    """Purpose: Build the FastAPI app with its engine, generator, and routes.
    Inputs/Outputs: Optional settings/client/engine overrides; returns a FastAPI app.
    Side Effects / State: Loads the tag vocabulary and configures the Gemini SDK.
    Dependencies: load_settings, build_engine, GeminiClient, WellnessAdvisorAgent.
    Failure Modes: Missing GEMINI_API_KEY raises ValueError; a missing vocabulary
        only disables tag features.
    If Removed: The service has no HTTP surface.
    Testing Notes: Pass a mocked GeminiClient and a small engine into TestClient.
    """
    # Build shared, read-only collaborators once per process.
    settings = settings or load_settings()
    engine = engine or build_engine(settings)
    gemini = gemini or GeminiClient(settings)
    agent = WellnessAdvisorAgent(
        gemini=gemini,
        engine=engine,
        prompts_dir=settings.prompts_dir,
        featured_url=settings.watsu_url,
    )

    @asynccontextmanager
    async def lifespan(_app: FastAPI):
        await run_in_threadpool(gemini.select_model)
        logger.info("advisor ready model=%s tags=%d", gemini.model_name, len(engine.registry))
        yield

    app = FastAPI(title="Health & Light Wellness Advisor", lifespan=lifespan)
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_methods=["*"],
        allow_headers=["*"],
    )
    app.state.settings = settings
    app.state.engine = engine
    app.state.gemini = gemini
    app.state.agent = agent

    @app.get("/", response_class=HTMLResponse, include_in_schema=False)
    def index() -> str:
        return (
            "Chatbot backend is live.<br>"
            f"Model: <strong>{gemini.model_name}</strong><br>"
            f"Tags loaded: <strong>{len(engine.registry)}</strong>"
        )

    @app.get("/health", response_model=HealthResponse)
    def health() -> HealthResponse:
        return HealthResponse(status="ok", model=gemini.model_name, tags_loaded=len(engine.registry))

    @app.post(
        "/chat",
        response_model=ChatResponse,
        responses={500: {"model": ErrorResponse}},
    )
    def chat(request: ChatRequest):
        """Purpose: Generate and post-process the advisor reply for one turn.
        Inputs/Outputs: Input is ChatRequest; output is ChatResponse or a 500 error body.
        Side Effects / State: One upstream generator call; nothing is persisted.
        Dependencies: WellnessAdvisorAgent.handle_messages.
        Failure Modes: Any failure becomes HTTP 500 with a generic message; details
            are logged, never returned.
        If Removed: Core chat functionality is unavailable.
        Testing Notes: Mock the generator and check reply links and the 500 path.
        """
        try:
            context = agent.handle_messages([message.dict() for message in request.messages])
        except GenerationError as exc:
            logger.error("Chat error: %s", exc)
            return JSONResponse(status_code=500, content={"error": GENERIC_ERROR})
        except Exception:
            logger.exception("Chat error")
            return JSONResponse(status_code=500, content={"error": GENERIC_ERROR})
        return ChatResponse(reply=context.reply)

    return app


app = create_app()


def main() -> None:
    """Run the API with uvicorn on PORT."""
    import uvicorn

    uvicorn.run(app, host="0.0.0.0", port=load_settings().port)
