from datetime import date

from daily_brief.grouping import Group, GroupingStage
from daily_brief.history import parse_index
from daily_brief.models import Story
from daily_brief.pipeline import PipelineResult, assign_global_ids
from daily_brief.render import (
    publish_run,
    render_index,
    sanitize_filename,
    story_filename,
    write_archive,
)


def _result(*groups):
    groups = list(groups)
    return PipelineResult(
        groups=groups,
        published=assign_global_ids(groups),
        buckets=[],
        grouping_stage=GroupingStage.PRIMARY,
    )


def _story(title, summary="A summary.", source="BBC: report"):
    return Story(title=title, summary=summary, source=source)


def test_sanitize_filename_slugs_titles():
    assert sanitize_filename("GPU Prices Crash!") == "gpu-prices-crash"
    assert sanitize_filename("  UK & EU: talks resume  ") == "uk-eu-talks-resume"
    assert sanitize_filename("!!!") == "story"
    assert len(sanitize_filename("word " * 40)) <= 60
    assert not sanitize_filename("word " * 40).endswith("-")


def test_story_filename_pads_global_id():
    published = assign_global_ids([Group("Tech", [_story("New GPU")])])

    assert story_filename(published[0]) == "01-new-gpu.html"


def test_index_escapes_model_text_and_parses_back(make_context):
    ctx = make_context(oracle=None)
    result = _result(
        Group("Tech <b>", [_story("<script>alert(1)</script>", "Fabs & foundries.")]),
        Group("World", [_story("Ceasefire holds", "Talks continue.")]),
    )

    html = render_index(result, ctx)

    assert "<script>" not in html
    assert "&lt;script&gt;" in html
    entries = parse_index(html, date(2025, 10, 17))
    assert [(e.group, e.title, e.summary) for e in entries] == [
        ("Tech <b>", "<script>alert(1)</script>", "Fabs & foundries."),
        ("World", "Ceasefire holds", "Talks continue."),
    ]


def test_story_pages_link_neighbours(make_context):
    ctx = make_context(oracle=None)
    result = _result(Group("Tech", [_story("One"), _story("Two"), _story("Three")]))

    run_dir = publish_run(result, ctx)

    first = (run_dir / "01-one.html").read_text(encoding="utf-8")
    middle = (run_dir / "02-two.html").read_text(encoding="utf-8")
    last = (run_dir / "03-three.html").read_text(encoding="utf-8")
    assert 'href="02-two.html"' in first and "Previous" not in first
    assert 'href="01-one.html"' in middle and 'href="03-three.html"' in middle
    assert "Next" not in last
    # Without expansion the summary stands in as the body.
    assert "<p>A summary.</p>" in first


def test_archive_lists_recent_runs_newest_first(tmp_path):
    for name in ("2025-09-30T08-00", "2025-10-10T08-00", "2025-10-16T08-00", "2025-10-16T20-00"):
        (tmp_path / name).mkdir()
        (tmp_path / name / "index.html").write_text("<h1>brief</h1>", encoding="utf-8")
    (tmp_path / "2025-10-15T08-00").mkdir()  # no index, never published

    archive = write_archive(tmp_path, date(2025, 10, 17), lookback_days=14).read_text(encoding="utf-8")

    assert "2025-09-30T08-00" not in archive
    assert "2025-10-15T08-00" not in archive
    positions = [
        archive.index(f"{name}/index.html")
        for name in ("2025-10-16T20-00", "2025-10-16T08-00", "2025-10-10T08-00")
    ]
    assert positions == sorted(positions)


def test_empty_archive_says_so(tmp_path):
    archive = write_archive(tmp_path / "site", date(2025, 10, 17)).read_text(encoding="utf-8")

    assert "No briefs yet." in archive


def test_same_minute_rerun_replaces_previous_pages(make_context):
    ctx = make_context(oracle=None)
    first_dir = publish_run(_result(Group("Tech", [_story("Old one"), _story("Old two")])), ctx)

    second_dir = publish_run(_result(Group("World", [_story("Fresh")])), ctx)

    assert second_dir == first_dir
    assert sorted(p.name for p in second_dir.iterdir()) == ["01-fresh.html", "index.html"]
    assert "Old one" not in (second_dir / "index.html").read_text(encoding="utf-8")
