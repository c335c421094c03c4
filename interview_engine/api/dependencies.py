"""
API Dependencies

Provides dependency injection for API endpoints.
Manages singleton instances of core components.
"""

import logging

from interview_engine.config.settings import get_settings
from interview_engine.core.evaluation_pipeline import EvaluationPipeline
from interview_engine.core.graders import AnswerGrader
from interview_engine.core.job_queue import InProcessJobQueue
from interview_engine.core.linear_orchestrator import LinearOrchestrator
from interview_engine.core.llm_client import LLMClient
from interview_engine.core.notifier import Notifier
from interview_engine.core.panel_ai import PanelAI
from interview_engine.core.panel_orchestrator import PanelOrchestrator
from interview_engine.core.sandbox import SandboxClient
from interview_engine.core.store import InMemoryStore

logger = logging.getLogger(__name__)


# ============================================================================
# SINGLETON INSTANCES
# ============================================================================

_store: InMemoryStore | None = None
_llm_client: LLMClient | None = None
_sandbox_client: SandboxClient | None = None
_job_queue: InProcessJobQueue | None = None
_notifier: Notifier | None = None
_panel_orchestrator: PanelOrchestrator | None = None
_linear_orchestrator: LinearOrchestrator | None = None


def get_store() -> InMemoryStore:
    """Get the session store singleton."""
    global _store

    if _store is None:
        _store = InMemoryStore()

    return _store


def get_llm_client() -> LLMClient | None:
    """
    Get the LLM client singleton.

    Returns None when no API key is configured; callers then fall back to
    their deterministic defaults.
    """
    global _llm_client

    if _llm_client is None:
        settings = get_settings()
        if not settings.llm_api_key:
            logger.warning("LLM_API_KEY not set, LLM-backed features will use fallbacks")
            return None
        _llm_client = LLMClient(settings)

    return _llm_client


def get_sandbox_client() -> SandboxClient:
    """Get the code sandbox client singleton."""
    global _sandbox_client

    if _sandbox_client is None:
        _sandbox_client = SandboxClient(get_settings())

    return _sandbox_client


def get_notifier() -> Notifier:
    """Get the outbound notifier singleton."""
    global _notifier

    if _notifier is None:
        _notifier = Notifier(enabled=get_settings().notifications_enabled)

    return _notifier


def get_job_queue() -> InProcessJobQueue:
    """
    Get the evaluation job queue singleton.

    Wires the grading adapters into the evaluation pipeline and hands the
    pipeline to the queue workers.
    """
    global _job_queue

    if _job_queue is None:
        settings = get_settings()
        grader = AnswerGrader(runner=get_sandbox_client(), oracle=get_llm_client())
        pipeline = EvaluationPipeline(get_store(), grader)

        _job_queue = InProcessJobQueue(
            pipeline.run,
            on_exhausted=pipeline.force_finalize,
            max_attempts=settings.evaluation_max_attempts,
            backoff_seconds=settings.evaluation_backoff_seconds,
            backoff_max_seconds=settings.evaluation_backoff_max_seconds,
            workers=settings.evaluation_workers,
        )

    return _job_queue


def get_panel_orchestrator() -> PanelOrchestrator:
    """Get the panel interview orchestrator singleton."""
    global _panel_orchestrator

    if _panel_orchestrator is None:
        settings = get_settings()
        _panel_orchestrator = PanelOrchestrator(
            store=get_store(),
            panel_ai=PanelAI(oracle=get_llm_client(), settings=settings),
            notifier=get_notifier(),
            settings=settings,
        )

    return _panel_orchestrator


def get_linear_orchestrator() -> LinearOrchestrator:
    """Get the linear interview orchestrator singleton."""
    global _linear_orchestrator

    if _linear_orchestrator is None:
        _linear_orchestrator = LinearOrchestrator(
            store=get_store(),
            queue=get_job_queue(),
            notifier=get_notifier(),
            settings=get_settings(),
        )

    return _linear_orchestrator


async def cleanup():
    """Cleanup resources on shutdown."""
    global _store, _llm_client, _sandbox_client, _job_queue, _notifier
    global _panel_orchestrator, _linear_orchestrator

    if _job_queue:
        await _job_queue.close()
        _job_queue = None

    if _notifier:
        await _notifier.close()
        _notifier = None

    if _llm_client:
        await _llm_client.close()
        _llm_client = None

    if _sandbox_client:
        await _sandbox_client.close()
        _sandbox_client = None

    _panel_orchestrator = None
    _linear_orchestrator = None
    _store = None
