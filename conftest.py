"""
Shared test fixtures: in-memory database, fast curation config and a
scripted stand-in for the generation service.
"""

from datetime import timedelta

import pytest

from topline.config import CurationConfig, Settings
from topline.database import Database
from topline.schemas import ContentKind, ContentRecord, ContentStatus, Priority, Vertical
from topline.shared.helpers import utcnow


class ScriptedLLM:
    """Replays queued responses in order.

    A queued exception is raised, a callable is called with the prompt, and
    anything else is returned as the response text. When the queue is empty
    the `default` entry is used the same way.
    """

    def __init__(self, responses=None, default=None):
        self.responses = list(responses or [])
        self.default = default
        self.calls = []

    async def generate(self, prompt, system_prompt=None, temperature=0.7, max_tokens=600, lite=False):
        self.calls.append({"prompt": prompt, "system_prompt": system_prompt, "lite": lite})
        if self.responses:
            response = self.responses.pop(0)
        elif self.default is not None:
            response = self.default
        else:
            raise RuntimeError("ScriptedLLM ran out of responses")
        if isinstance(response, BaseException):
            raise response
        if callable(response):
            return response(prompt)
        return response


@pytest.fixture
def db():
    database = Database("sqlite://")
    database.create_tables()
    return database


@pytest.fixture
def config():
    """Defaults, minus retry backoff and trusted-source bypass."""
    return CurationConfig(retry_backoff_seconds=0)


@pytest.fixture
def settings():
    return Settings(
        openai_api_key="",
        mock_mode=True,
        llm_call_delay_seconds=0,
        feed_batch_pause_seconds=0,
        feed_language_filter=False,
        scorer_use_llm=False,
        pipeline_source_concurrency=2,
        database_url="sqlite://",
    )


@pytest.fixture
def scripted_llm():
    return ScriptedLLM


@pytest.fixture
def make_record():
    """Factory for ContentRecords with sensible defaults."""
    counter = {"n": 0}

    def _make(
        title=None,
        kind=ContentKind.ARTICLE,
        vertical=Vertical.TECHNOLOGY_MEDIA,
        hours_old=1,
        status=ContentStatus.DRAFT,
        source_name="Test Wire",
        **overrides,
    ):
        counter["n"] += 1
        now = utcnow()
        values = dict(
            kind=kind,
            title=title or f"Story number {counter['n']} about ad platforms",
            summary=overrides.pop("summary", ""),
            source_url=overrides.pop("source_url", f"https://example.com/{kind.value}/{counter['n']}"),
            source_name=source_name,
            vertical=vertical,
            priority=overrides.pop("priority", Priority.MEDIUM),
            status=status,
            published_at=now - timedelta(hours=hours_old),
            created_at=now - timedelta(hours=hours_old),
            updated_at=now,
        )
        values.update(overrides)
        return ContentRecord(**values)

    return _make
