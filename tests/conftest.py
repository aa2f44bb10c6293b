from datetime import datetime, timezone

import pytest

from daily_brief.config import Settings
from daily_brief.context import build_context
from daily_brief.models import Topic
from daily_brief.oracle import OracleError
from daily_brief.schema import validate_payload

RUN_AT = datetime(2025, 10, 17, 14, 30, tzinfo=timezone.utc)


class ScriptedOracle:
    """Stands in for OracleClient; replies are queued per response schema."""

    def __init__(self, **replies):
        self.replies = {name: list(items) for name, items in replies.items()}
        self.calls = []

    def generate_json(self, prompt, *, schema, **options):
        self.calls.append({"prompt": prompt, "schema": schema, **options})
        queue = self.replies.get(schema) or []
        if not queue:
            raise OracleError(f"no scripted {schema} reply")
        reply = queue.pop(0)
        if isinstance(reply, Exception):
            raise reply
        try:
            return validate_payload(reply, schema)
        except ValueError as exc:
            raise OracleError(str(exc)) from exc

    def calls_for(self, schema):
        return [call for call in self.calls if call["schema"] == schema]


def story(n, topic="t"):
    return {"title": f"{topic} title {n}", "summary": f"{topic} summary {n}", "source": f"BBC: report {n}"}


@pytest.fixture
def sleeps():
    return []


@pytest.fixture
def make_context(tmp_path, sleeps):
    def _make(oracle, topics=None, now=RUN_AT, **overrides):
        settings = Settings(**overrides)
        return build_context(
            settings,
            oracle=oracle,
            topics=topics or [Topic(name="gaming", target=3, description="game launches")],
            now=now,
            output_root=tmp_path / "site",
            sleep=sleeps.append,
        )

    return _make
