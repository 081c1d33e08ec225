from __future__ import annotations

import json
from pathlib import Path

from tf_report.jsonlines import parse_json_lines
from tf_report.render import get_action_emoji, render

FIXTURES = Path(__file__).resolve().parent / "fixtures"


def _render_fixture(name: str, **kwargs) -> str:
    return render(parse_json_lines((FIXTURES / name).read_text(encoding="utf-8")), **kwargs)


def _line(**fields) -> str:
    base = {"@level": "info", "@message": "msg", "@module": "tofu.ui", "@timestamp": "2024-01-15T10:00:00Z"}
    base.update(fields)
    return json.dumps(base)


def _diag(severity: str, summary: str) -> str:
    return _line(type="diagnostic", diagnostic={"severity": severity, "summary": summary, "detail": "details"})


def _change(addr: str, action: str = "create") -> str:
    return _line(type="planned_change", change={"resource": {"addr": addr}, "action": action})


def test_plan_with_changes_summary_precedes_details():
    output = _render_fixture("plan-with-changes.jsonl")

    assert output.startswith(
        "**Plan:** **1** to add :heavy_plus_sign:, **1** to change 🔄, **1** to remove :heavy_minus_sign:"
    )
    assert "<summary>📋 Planned Changes</summary>" in output
    assert ":heavy_plus_sign: **random_pet.server** (create)" in output
    assert "🔄 **random_string.password** (update)" in output
    assert ":heavy_minus_sign: **random_id.legacy** (delete)" in output
    assert output.index("**Plan:**") < output.index("<details>")


def test_no_changes_renders_sentence_without_details():
    output = _render_fixture("plan-no-changes.jsonl")

    assert output == "**Plan:** No changes."
    assert "<details>" not in output


def test_zero_change_summary_hides_noop_planned_changes():
    text = "\n".join(
        [
            _change("null_resource.a", "noop"),
            _line(type="change_summary", changes={"add": 0, "change": 0, "remove": 0, "operation": "plan"}),
        ]
    )
    output = render(parse_json_lines(text))
    assert "No changes" in output
    assert "Planned Changes" not in output


def test_import_only_summary_is_not_reported_as_no_changes():
    text = "\n".join(
        [
            _change("aws_s3_bucket.b", "noop"),
            _line(type="change_summary", changes={"add": 0, "change": 0, "remove": 0, "import": 1, "operation": "plan"}),
        ]
    )
    output = render(parse_json_lines(text))

    assert output.startswith("**Plan:** **1** to import 📥\n\n")
    assert "No changes" not in output
    assert "<summary>📋 Planned Changes</summary>" in output


def test_location_requires_a_start_line():
    diagnostic = {"severity": "error", "summary": "Bad", "range": {"filename": "main.tf"}}
    output = render(parse_json_lines(_line(type="diagnostic", diagnostic=diagnostic)))

    assert "❌ **Bad**" in output
    assert "📄" not in output
    assert "main.tf:0" not in output


def test_errors_render_with_location_and_snippet():
    output = _render_fixture("plan-with-errors.jsonl")

    assert "<summary>❌ Errors</summary>" in output
    assert "❌ **Invalid resource type**" in output
    assert "📄 `main.tf:12`" in output
    assert '```hcl\nresource "random_invalid" "test" {\n```' in output
    assert "❌ **Missing required argument**" in output
    assert '"@level"' not in output


def test_errors_and_warnings_are_separate_sections_in_order():
    text = "\n".join([_diag("warning", "Deprecated attribute"), _diag("error", "Boom"), _change("a.b")])
    output = render(parse_json_lines(text))

    errors = output.index("<summary>❌ Errors</summary>")
    warnings = output.index("<summary>⚠️ Warnings</summary>")
    changes = output.index("<summary>📋 Planned Changes</summary>")
    assert errors < warnings < changes
    assert output.count("<details>") == output.count("</details>") == 3


def test_info_diagnostics_are_not_rendered():
    output = render(parse_json_lines(_diag("info", "Just so you know")))
    assert output == ""


def test_apply_renders_applied_changes_only():
    output = _render_fixture("apply-success.jsonl")

    assert output.startswith("**Apply:** **1** to add :heavy_plus_sign:")
    assert "<summary>✅ Applied Changes</summary>" in output
    assert "Planned Changes" not in output


def test_planned_changes_without_summary_still_render():
    output = render(parse_json_lines(_change("random_pet.server")))
    assert output.startswith("<details>\n<summary>📋 Planned Changes</summary>")


def test_destroy_prefers_apply_hooks():
    text = "\n".join(
        [
            _change("random_pet.server", "delete"),
            _line(type="apply_complete", hook={"resource": {"addr": "random_pet.server"}, "action": "delete"}),
            _line(type="change_summary", changes={"add": 0, "change": 0, "remove": 1, "operation": "destroy"}),
        ]
    )
    output = render(parse_json_lines(text))
    assert output.startswith("**Destroy:** **1** to remove :heavy_minus_sign:")
    assert "✅ Applied Changes" in output


def test_drift_section():
    output = _render_fixture("resource-drift.jsonl")

    assert "<summary>🔀 Resource Drift</summary>" in output
    assert "🔄 **random_pet.server** (update)" in output


def test_nothing_recognised_renders_empty():
    assert render(parse_json_lines(_line(type="log"))) == ""
    assert render(parse_json_lines("")) == ""


def test_action_emoji_table():
    assert get_action_emoji("create") == ":heavy_plus_sign:"
    assert get_action_emoji("update") == "🔄"
    assert get_action_emoji("delete") == ":heavy_minus_sign:"
    assert get_action_emoji("remove") == ":heavy_minus_sign:"
    assert get_action_emoji("replace") == "±"
    assert get_action_emoji("read") == "📖"
    assert get_action_emoji("move") == "🚚"
    assert get_action_emoji("noop") == "⚪"
    assert get_action_emoji("something-new") == "⚪"


def test_max_size_limits_entries_and_reports_count():
    changes = [_change(f"random_pet.server_{i:04d}") for i in range(500)]
    summary = _line(type="change_summary", changes={"add": 500, "change": 0, "remove": 0, "operation": "plan"})
    output = render(parse_json_lines("\n".join(changes + [summary])), max_size=5000)

    assert len(output) <= 5000
    assert output.startswith("**Plan:** **500** to add")
    assert "of 500 changes)" in output
    assert output.rstrip().endswith("</details>")
