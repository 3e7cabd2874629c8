"""Shared FastAPI dependencies."""

from __future__ import annotations

from typing import TYPE_CHECKING

from pipelinex.config import AnalyzerSettings

if TYPE_CHECKING:
    from pipelinex.db.database import Database
    from pipelinex.explainer.engine import ExplainEngine
    from pipelinex.llm.base import LLMBackend

_settings: AnalyzerSettings | None = None
_database: Database | None = None
_llm_backend: LLMBackend | None = None
_explain_engine: ExplainEngine | None = None
_signing_key: str | None = None


def get_settings() -> AnalyzerSettings:
    """FastAPI dependency: return the shared AnalyzerSettings."""
    assert _settings is not None, "AnalyzerSettings not initialised"
    return _settings


def get_database() -> Database:
    """FastAPI dependency: return the shared Database."""
    assert _database is not None, "Database not initialised"
    return _database


def get_explain_engine() -> ExplainEngine:
    """FastAPI dependency: return the shared ExplainEngine."""
    assert _explain_engine is not None, "ExplainEngine not initialised"
    return _explain_engine


def get_signing_key() -> str | None:
    """FastAPI dependency: the hex Ed25519 key for signing history, if configured."""
    return _signing_key
