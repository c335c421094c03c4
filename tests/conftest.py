import pytest

from interview_engine.config.settings import Settings
from interview_engine.core.notifier import Notifier
from interview_engine.core.store import InMemoryStore
from tests.helpers import RecordingSender


@pytest.fixture
def settings():
    return Settings(
        _env_file=None,
        llm_api_key="",
        langfuse_enabled=False,
        evaluation_backoff_seconds=0,
        evaluation_backoff_max_seconds=0,
        evaluation_workers=2,
    )


@pytest.fixture
def store():
    return InMemoryStore()


@pytest.fixture
def sender():
    return RecordingSender()


@pytest.fixture
async def notifier(sender):
    notifier = Notifier(sender=sender)
    yield notifier
    await notifier.close()
