from datetime import date

from conftest import ScriptedOracle, story

from daily_brief.acquisition import AcquisitionState, acquire_all, acquire_topic
from daily_brief.models import Topic
from daily_brief.oracle import OracleError

GAMING = Topic(name="gaming", target=3, description="new game updates/releases")


def test_scenario_fills_quota_in_two_calls_and_caps(make_context):
    first = [story(n, "g") for n in range(5)] + [
        {"title": "", "summary": "no title", "source": "BBC: x"},
        "not a record",
        story(0, "g"),
    ]
    second = [story(n, "g") for n in range(5, 9)]
    oracle = ScriptedOracle(stories=[{"stories": first}, {"stories": second}])
    ctx = make_context(oracle, topics=[GAMING], stories_per_topic=8)

    bucket = acquire_topic(GAMING, ctx)

    assert len(bucket.stories) == 8
    assert bucket.tries == 2
    assert bucket.state is AcquisitionState.SATISFIED
    assert len(oracle.calls) == 2
    assert [s.title for s in bucket.stories] == [f"g title {n}" for n in range(8)]


def test_always_failing_oracle_terminates_after_max_tries(make_context, sleeps):
    oracle = ScriptedOracle(stories=[OracleError("boom")] * 5)
    ctx = make_context(oracle, topics=[GAMING], max_tries=3, retry_delay_seconds=2.0)

    bucket = acquire_topic(GAMING, ctx)

    assert bucket.stories == []
    assert bucket.tries == 3
    assert bucket.state is AcquisitionState.EXHAUSTED
    assert len(oracle.calls) == 3
    assert sleeps == [2.0, 2.0]


def test_exhausted_bucket_keeps_partial_results(make_context):
    oracle = ScriptedOracle(
        stories=[{"stories": [story(1)]}, OracleError("rate limited"), {"stories": [story(1), story(2)]}]
    )
    ctx = make_context(oracle, topics=[GAMING], stories_per_topic=8)

    bucket = acquire_topic(GAMING, ctx)

    assert [s.title for s in bucket.stories] == ["t title 1", "t title 2"]
    assert bucket.state is AcquisitionState.EXHAUSTED
    assert bucket.shortfall == 6


def test_bucket_never_shrinks_across_tries(make_context):
    sizes = []
    oracle = ScriptedOracle(
        stories=[{"stories": [story(1), story(2)]}, {"stories": []}, {"stories": [story(2), story(3)]}]
    )
    ctx = make_context(oracle, topics=[GAMING], stories_per_topic=8)
    original = oracle.generate_json

    def tracking(prompt, **kwargs):
        sizes.append(prompt.count("- t title"))
        return original(prompt, **kwargs)

    oracle.generate_json = tracking
    bucket = acquire_topic(GAMING, ctx)

    assert len(bucket.stories) == 3
    assert sizes == sorted(sizes)


def test_retry_prompt_relaxes_required_count(make_context):
    oracle = ScriptedOracle(stories=[{"stories": [story(1)]}, {"stories": [story(2)]}, {"stories": []}])
    ctx = make_context(oracle, topics=[GAMING], stories_per_topic=8)

    acquire_topic(GAMING, ctx)

    prompts = [call["prompt"] for call in oracle.calls]
    assert "exactly 8 unique stories" in prompts[0]
    assert "aim for at least 4" in prompts[1]
    assert "t title 1" in prompts[1]


def test_live_search_window_covers_last_day(make_context):
    oracle = ScriptedOracle(stories=[{"stories": [story(n) for n in range(8)]}])
    ctx = make_context(oracle, topics=[GAMING], live_search=True)

    acquire_topic(GAMING, ctx)

    window = oracle.calls[0]["search_window"]
    assert window.start == date(2025, 10, 16)
    assert window.end == date(2025, 10, 17)
    assert oracle.calls[0]["sources"] == ["web", "news", "x"]


def test_without_live_search_no_window_is_sent(make_context):
    oracle = ScriptedOracle(stories=[{"stories": [story(n) for n in range(8)]}])
    ctx = make_context(oracle, topics=[GAMING], live_search=False)

    acquire_topic(GAMING, ctx)

    assert oracle.calls[0]["search_window"] is None
    assert "live search" not in oracle.calls[0]["prompt"].lower()


def test_strict_mode_drops_sources_without_separator(make_context):
    records = [story(n) for n in range(8)] + [{"title": "x", "summary": "y", "source": "Reuters"}]
    oracle = ScriptedOracle(stories=[{"stories": records[-1:]}, {"stories": records[:8]}])
    ctx = make_context(oracle, topics=[GAMING], require_source_separator=True)

    bucket = acquire_topic(GAMING, ctx)

    assert all(":" in s.source for s in bucket.stories)
    assert len(bucket.stories) == 8


def test_acquire_all_runs_topics_in_order_with_pause(make_context, sleeps):
    topics = [GAMING, Topic(name="science", target=3, description="discoveries")]
    oracle = ScriptedOracle(
        stories=[{"stories": [story(n, "g") for n in range(8)]}, {"stories": [story(n, "s") for n in range(8)]}]
    )
    ctx = make_context(oracle, topics=topics, call_delay_seconds=1.0)

    buckets = acquire_all(ctx)

    assert [b.topic.name for b in buckets] == ["gaming", "science"]
    assert ctx.buckets is buckets
    assert sleeps == [1.0]
    assert "discoveries" in oracle.calls[1]["prompt"]
