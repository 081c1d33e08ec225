from __future__ import annotations

import io
import json
from pathlib import Path

import pytest

from tf_report import jsonlines

FIXTURES = Path(__file__).resolve().parent / "fixtures"


def _fixture(name: str) -> str:
    return (FIXTURES / name).read_text(encoding="utf-8")


def _line(**fields) -> str:
    base = {"@level": "info", "@message": "msg", "@module": "tofu.ui", "@timestamp": "2024-01-15T10:00:00Z"}
    base.update(fields)
    return json.dumps(base)


@pytest.mark.parametrize("text", ["", "   ", "\n\n", "  \n\t\n  "])
def test_blank_text_is_not_json_lines(text):
    assert jsonlines.is_json_lines(text) is False


def test_detects_fixtures():
    assert jsonlines.is_json_lines(_fixture("plan-with-changes.jsonl"))
    assert jsonlines.is_json_lines(_fixture("plan-with-errors.jsonl"))


def test_rejects_plain_text_and_invalid_json():
    assert not jsonlines.is_json_lines("This is just plain text\nNot JSON at all")
    assert not jsonlines.is_json_lines("{ invalid json }\n{ more invalid }")


def test_rejects_json_without_required_fields():
    assert not jsonlines.is_json_lines('{"foo":"bar"}\n{"baz":"qux"}')
    assert not jsonlines.is_json_lines('{"type":"log"}\n["type", "@message"]')


def test_single_valid_line_among_garbage_is_enough():
    text = "garbage\n" + _line(type="log") + "\nmore garbage\n"
    assert jsonlines.is_json_lines(text)


def test_only_first_three_non_blank_lines_are_sampled():
    text = "a\n\nb\n\nc\n" + _line(type="log")
    assert not jsonlines.is_json_lines(text)


def test_stream_detection_stops_after_sample():
    handle = io.StringIO("x\ny\n" + _line(type="log") + "\n" + "tail\n" * 5)
    assert jsonlines.is_json_lines_stream(handle)
    assert handle.readline() == "tail\n"


def test_parse_empty_input():
    parsed = jsonlines.parse_json_lines("")
    assert parsed.messages == ()
    assert parsed.diagnostics == ()
    assert parsed.planned_changes == ()
    assert parsed.resource_drifts == ()
    assert parsed.apply_completes == ()
    assert parsed.change_summary is None
    assert parsed.has_errors is False


def test_parse_plan_with_changes():
    parsed = jsonlines.parse_json_lines(_fixture("plan-with-changes.jsonl"))

    assert len(parsed.messages) == 5
    assert isinstance(parsed.messages[0], jsonlines.VersionEvent)
    assert parsed.messages[0].version == "1.6.0"
    assert [c.action for c in parsed.planned_changes] == ["create", "update", "delete"]
    assert parsed.planned_changes[0].resource.addr == "random_pet.server"
    summary = parsed.change_summary
    assert summary is not None
    assert (summary.changes.add, summary.changes.change, summary.changes.remove) == (1, 1, 1)
    assert summary.changes.operation == "plan"
    assert summary.changes.has_changes
    assert parsed.has_errors is False


def test_parse_plan_with_errors():
    parsed = jsonlines.parse_json_lines(_fixture("plan-with-errors.jsonl"))

    assert len(parsed.messages) == 3
    assert len(parsed.diagnostics) == 2
    assert parsed.has_errors is True
    first = parsed.diagnostics[0].diagnostic
    assert first.severity == "error"
    assert first.summary == "Invalid resource type"
    assert first.range is not None
    assert first.range.filename == "main.tf"
    assert first.range.line == 12
    assert first.code == 'resource "random_invalid" "test" {'
    assert parsed.diagnostics[1].diagnostic.summary == "Missing required argument"
    assert parsed.diagnostics[1].diagnostic.code is None


def test_parse_apply_collects_hooks_and_outputs():
    parsed = jsonlines.parse_json_lines(_fixture("apply-success.jsonl"))

    assert parsed.change_summary is not None
    assert parsed.change_summary.changes.operation == "apply"
    assert [e.resource.addr for e in parsed.apply_completes] == ["random_pet.server"]
    assert parsed.outputs is not None
    assert parsed.outputs.outputs["server_name"]["value"] == "usable-owl"
    # apply_start has no category of its own but stays in the message list
    assert any(isinstance(m, jsonlines.OtherEvent) and m.type == "apply_start" for m in parsed.messages)


def test_parse_resource_drift():
    parsed = jsonlines.parse_json_lines(_fixture("resource-drift.jsonl"))

    assert len(parsed.resource_drifts) == 1
    assert parsed.resource_drifts[0].action == "update"
    assert parsed.resource_drifts[0].resource.addr == "random_pet.server"


def test_malformed_lines_are_skipped():
    text = "\n".join(
        [
            _line(type="log", **{"@message": "first"}),
            "{not json",
            '{"no_type": true}',
            _line(type="diagnostic", diagnostic="not an object"),
            _line(type="log", **{"@message": "second"}),
        ]
    )
    parsed = jsonlines.parse_json_lines(text)
    assert [m.message for m in parsed.messages] == ["first", "second"]
    assert parsed.diagnostics == ()


def test_deeply_nested_line_is_skipped():
    nested = "[" * 200000 + "]" * 200000

    assert jsonlines.is_json_lines(nested) is False
    assert jsonlines.is_json_lines(nested + "\n" + _line(type="log")) is True
    parsed = jsonlines.parse_json_lines(_line(type="log", **{"@message": "kept"}) + "\n" + nested)
    assert [m.message for m in parsed.messages] == ["kept"]


def test_unknown_types_are_kept_but_not_categorised():
    parsed = jsonlines.parse_json_lines(_line(type="test_summary", test_summary={"status": "pass"}))
    assert len(parsed.messages) == 1
    assert isinstance(parsed.messages[0], jsonlines.OtherEvent)
    assert parsed.planned_changes == ()
    assert parsed.change_summary is None


def test_last_change_summary_wins():
    text = "\n".join(
        [
            _line(type="change_summary", changes={"add": 5, "change": 0, "remove": 0, "operation": "plan"}),
            _line(type="change_summary", changes={"add": 0, "change": 2, "remove": 0, "operation": "apply"}),
        ]
    )
    summary = jsonlines.parse_json_lines(text).change_summary
    assert summary is not None
    assert summary.changes.change == 2
    assert summary.changes.operation == "apply"


def test_address_falls_back_to_type_and_name():
    text = _line(
        type="planned_change",
        change={"resource": {"resource_type": "aws_s3_bucket", "resource_name": "logs"}, "action": "create"},
    )
    parsed = jsonlines.parse_json_lines(text)
    assert parsed.planned_changes[0].resource.addr == "aws_s3_bucket.logs"


def test_warning_does_not_set_has_errors():
    text = _line(type="diagnostic", diagnostic={"severity": "warning", "summary": "Deprecated", "detail": ""})
    parsed = jsonlines.parse_json_lines(text)
    assert parsed.has_errors is False
    assert len(parsed.warnings) == 1
    assert parsed.errors == []


def test_parse_stream_from_file_handle(tmp_path):
    path = tmp_path / "plan.jsonl"
    path.write_text(_fixture("plan-with-changes.jsonl"), encoding="utf-8")
    with path.open("r", encoding="utf-8") as handle:
        parsed = jsonlines.parse_json_lines_stream(handle)
    assert len(parsed.planned_changes) == 3
