import json

import pytest
from pydantic import ValidationError

from daily_brief.config import DEFAULT_TOPICS, Settings, get_settings, load_topics


def test_defaults_match_observed_configuration():
    assert [t.name for t in DEFAULT_TOPICS] == ["gaming", "hardware", "world", "ukgov", "science"]
    assert sum(t.target for t in DEFAULT_TOPICS) == 20
    settings = Settings(_env_file=None)
    assert settings.stories_per_topic == 8
    assert settings.max_tries == 3
    assert settings.target_total == 20
    assert settings.history_lookback_days == 14


def test_settings_read_environment(monkeypatch):
    monkeypatch.setenv("XAI_API_KEY", "test-key")
    monkeypatch.setenv("MAX_TRIES", "5")
    monkeypatch.setenv("MAX_SUMMARY_WORDS", "30")
    monkeypatch.setenv("REQUIRE_SOURCE_SEPARATOR", "true")

    settings = get_settings()

    assert settings.oracle_api_key == "test-key"
    assert settings.max_tries == 5
    policy = settings.strictness()
    assert policy.max_summary_words == 30
    assert policy.require_source_separator is True


def test_load_topics_defaults_without_path():
    assert load_topics(None) == list(DEFAULT_TOPICS)


def test_load_topics_from_file(tmp_path):
    path = tmp_path / "topics.json"
    path.write_text(
        json.dumps([{"name": "space", "target": 4, "description": "launches and missions"}]),
        encoding="utf-8",
    )

    topics = load_topics(path)

    assert [(t.name, t.target) for t in topics] == [("space", 4)]


@pytest.mark.parametrize(
    "content",
    [
        "not json",
        "[]",
        json.dumps([{"name": "space", "target": -1, "description": "x"}]),
        json.dumps([{"name": "space", "description": "x"}]),
        json.dumps(
            [
                {"name": "space", "target": 1, "description": "x"},
                {"name": "space", "target": 2, "description": "y"},
            ]
        ),
    ],
)
def test_load_topics_rejects_invalid_files(tmp_path, content):
    path = tmp_path / "topics.json"
    path.write_text(content, encoding="utf-8")

    with pytest.raises(ValueError):
        load_topics(path)


def test_non_positive_summary_word_limit_fails_when_settings_load(monkeypatch):
    monkeypatch.setenv("MAX_SUMMARY_WORDS", "0")

    with pytest.raises(ValidationError, match="max_summary_words"):
        get_settings()


def test_context_builds_strictness_policy_once(make_context):
    ctx = make_context(oracle=None, max_summary_words=12, require_source_separator=True)

    assert ctx.strictness.max_summary_words == 12
    assert ctx.strictness.require_source_separator is True
