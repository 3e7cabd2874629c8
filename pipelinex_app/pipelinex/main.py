"""FastAPI application -- PipelineX entrypoint."""

from __future__ import annotations

import logging
import os
from contextlib import asynccontextmanager
from typing import AsyncGenerator

from fastapi import FastAPI

import pipelinex.deps as deps
from pipelinex.api.analyze import router as analyze_router
from pipelinex.api.cost import router as cost_router
from pipelinex.api.explain import router as explain_router
from pipelinex.api.history import router as history_router
from pipelinex.api.lint import router as lint_router
from pipelinex.api.verify import router as verify_router
from pipelinex.config import load_options, load_settings
from pipelinex.db.database import Database
from pipelinex.explainer.engine import ExplainEngine
from pipelinex.llm.openai_compat import OpenAICompatBackend
from pipelinex.signing import public_key_for

logger = logging.getLogger(__name__)


def configure_logging() -> None:
    log_level = logging.DEBUG if os.environ.get("PIPELINEX_DEV_MODE") else logging.INFO
    logging.basicConfig(
        level=log_level,
        format="%(asctime)s %(levelname)s [%(name)s] %(message)s",
    )


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Application lifespan: init resources on startup, clean up on shutdown."""
    configure_logging()

    options = load_options()
    logger.info(
        "PipelineX starting with options: %s",
        {k: v for k, v in options.items() if "key" not in k},
    )

    deps._settings = load_settings(options)

    # Init database
    deps._database = Database(options.get("db_path") or None)
    await deps._database.connect()
    logger.info("Database connected")

    # LLM backend is optional; explanations fall back to templates
    api_url = options.get("llm_api_url", "")
    if api_url:
        model = options.get("llm_model", "gpt-4o-mini")
        deps._llm_backend = OpenAICompatBackend(
            base_url=api_url,
            model=model,
            api_key=options.get("llm_api_key", ""),
        )
        logger.info("LLM backend: openai_compat (model: %s)", model)
    else:
        logger.info("No LLM configured, using template explanations")

    deps._explain_engine = ExplainEngine(deps._llm_backend)

    # History entries are signed only when a key is configured
    signing_key = options.get("signing_key") or None
    if signing_key:
        logger.info("History signing enabled (public key %s)", public_key_for(signing_key))
    deps._signing_key = signing_key

    yield

    # Shutdown
    if deps._llm_backend is not None:
        await deps._llm_backend.close()
    if deps._database:
        await deps._database.close()
    deps._settings = None
    deps._database = None
    deps._llm_backend = None
    deps._explain_engine = None
    deps._signing_key = None


app = FastAPI(
    title="PipelineX",
    version="0.1.0",
    lifespan=lifespan,
)

app.include_router(analyze_router)
app.include_router(lint_router)
app.include_router(cost_router)
app.include_router(explain_router)
app.include_router(verify_router)
app.include_router(history_router)
