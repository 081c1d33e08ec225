"""Detect and parse OpenTofu/Terraform machine-readable (``-json``) output.

Each line of the stream is a JSON object tagged with ``type`` plus the common
``@level``/``@message``/``@module``/``@timestamp`` fields. Lines that are not
valid JSON, or that lack ``type``/``@message``, are skipped silently so a
partially corrupted log still yields whatever could be recovered.

Reference: https://opentofu.org/docs/internals/machine-readable-ui/
"""
from __future__ import annotations

import json
from dataclasses import dataclass, field
from typing import Any, Dict, Iterable, Iterator, List, Optional, Tuple, Union

SAMPLE_LINES = 3


@dataclass(frozen=True)
class Resource:
    addr: str
    resource_type: str = ""
    resource_name: str = ""
    module: str = ""


@dataclass(frozen=True)
class Range:
    filename: str
    line: int
    column: int = 0


@dataclass(frozen=True)
class Diagnostic:
    severity: str
    summary: str
    detail: str = ""
    range: Optional[Range] = None
    code: Optional[str] = None


@dataclass(frozen=True)
class ChangeCounts:
    add: int = 0
    change: int = 0
    remove: int = 0
    import_: int = 0
    operation: str = "plan"

    @property
    def has_changes(self) -> bool:
        return any((self.add, self.change, self.remove, self.import_))


@dataclass(frozen=True)
class BaseEvent:
    type: str
    level: str
    message: str
    module: str
    timestamp: str
    raw: Dict[str, Any] = field(repr=False, compare=False)


@dataclass(frozen=True)
class VersionEvent(BaseEvent):
    version: str = ""
    ui: str = ""


@dataclass(frozen=True)
class LogEvent(BaseEvent):
    pass


@dataclass(frozen=True)
class DiagnosticEvent(BaseEvent):
    diagnostic: Diagnostic = field(default_factory=lambda: Diagnostic("info", ""))


@dataclass(frozen=True)
class PlannedChangeEvent(BaseEvent):
    resource: Resource = field(default_factory=lambda: Resource(""))
    action: str = "noop"
    reason: Optional[str] = None


@dataclass(frozen=True)
class ResourceDriftEvent(BaseEvent):
    resource: Resource = field(default_factory=lambda: Resource(""))
    action: str = "noop"


@dataclass(frozen=True)
class ApplyCompleteEvent(BaseEvent):
    resource: Resource = field(default_factory=lambda: Resource(""))
    action: str = "noop"
    elapsed_seconds: float = 0


@dataclass(frozen=True)
class ChangeSummaryEvent(BaseEvent):
    changes: ChangeCounts = field(default_factory=ChangeCounts)


@dataclass(frozen=True)
class OutputsEvent(BaseEvent):
    outputs: Dict[str, Any] = field(default_factory=dict)


@dataclass(frozen=True)
class OtherEvent(BaseEvent):
    """Hook, provisioner, refresh and test events, plus unknown types."""


Event = Union[
    VersionEvent,
    LogEvent,
    DiagnosticEvent,
    PlannedChangeEvent,
    ResourceDriftEvent,
    ApplyCompleteEvent,
    ChangeSummaryEvent,
    OutputsEvent,
    OtherEvent,
]


@dataclass(frozen=True)
class ParsedLog:
    messages: Tuple[Event, ...] = ()
    diagnostics: Tuple[DiagnosticEvent, ...] = ()
    planned_changes: Tuple[PlannedChangeEvent, ...] = ()
    resource_drifts: Tuple[ResourceDriftEvent, ...] = ()
    apply_completes: Tuple[ApplyCompleteEvent, ...] = ()
    change_summary: Optional[ChangeSummaryEvent] = None
    outputs: Optional[OutputsEvent] = None
    has_errors: bool = False

    @property
    def errors(self) -> List[DiagnosticEvent]:
        return [d for d in self.diagnostics if d.diagnostic.severity == "error"]

    @property
    def warnings(self) -> List[DiagnosticEvent]:
        return [d for d in self.diagnostics if d.diagnostic.severity == "warning"]


def _non_blank(lines: Iterable[str]) -> Iterator[str]:
    for line in lines:
        value = line.strip()
        if value:
            yield value


def _load_object(line: str) -> Optional[Dict[str, Any]]:
    try:
        obj = json.loads(line)
    except (ValueError, RecursionError):
        return None
    if not isinstance(obj, dict):
        return None
    if "type" not in obj or "@message" not in obj:
        return None
    return obj


def _as_int(value: object) -> int:
    if isinstance(value, bool):
        return int(value)
    if isinstance(value, (int, float)):
        return int(value)
    if isinstance(value, str):
        try:
            return int(value)
        except ValueError:
            return 0
    return 0


def _str(value: object) -> str:
    return value if isinstance(value, str) else ""


def _resource(obj: object) -> Resource:
    data = obj if isinstance(obj, dict) else {}
    resource_type = _str(data.get("resource_type"))
    resource_name = _str(data.get("resource_name"))
    addr = _str(data.get("addr")) or f"{resource_type}.{resource_name}"
    return Resource(
        addr=addr,
        resource_type=resource_type,
        resource_name=resource_name,
        module=_str(data.get("module")),
    )


def _diagnostic(obj: object) -> Optional[Diagnostic]:
    if not isinstance(obj, dict):
        return None
    range_obj = obj.get("range")
    diag_range: Optional[Range] = None
    if isinstance(range_obj, dict):
        start = range_obj.get("start") if isinstance(range_obj.get("start"), dict) else {}
        diag_range = Range(
            filename=_str(range_obj.get("filename")),
            line=_as_int(start.get("line")),
            column=_as_int(start.get("column")),
        )
    snippet = obj.get("snippet")
    code = snippet.get("code") if isinstance(snippet, dict) else None
    return Diagnostic(
        severity=_str(obj.get("severity")) or "info",
        summary=_str(obj.get("summary")),
        detail=_str(obj.get("detail")),
        range=diag_range,
        code=code if isinstance(code, str) and code else None,
    )


def decode_event(obj: Dict[str, Any]) -> Optional[Event]:
    """Build the typed event for a decoded line, or ``None`` if its payload is malformed."""

    base = dict(
        type=_str(obj.get("type")),
        level=_str(obj.get("@level")),
        message=_str(obj.get("@message")),
        module=_str(obj.get("@module")),
        timestamp=_str(obj.get("@timestamp")),
        raw=obj,
    )
    kind = base["type"]

    if kind == "version":
        return VersionEvent(**base, version=_str(obj.get("tofu") or obj.get("terraform")), ui=_str(obj.get("ui")))
    if kind == "log":
        return LogEvent(**base)
    if kind == "diagnostic":
        diagnostic = _diagnostic(obj.get("diagnostic"))
        if diagnostic is None:
            return None
        return DiagnosticEvent(**base, diagnostic=diagnostic)
    if kind in ("planned_change", "resource_drift"):
        change = obj.get("change")
        if not isinstance(change, dict):
            return None
        resource = _resource(change.get("resource"))
        action = _str(change.get("action")) or "noop"
        if kind == "resource_drift":
            return ResourceDriftEvent(**base, resource=resource, action=action)
        reason = change.get("reason")
        return PlannedChangeEvent(
            **base,
            resource=resource,
            action=action,
            reason=reason if isinstance(reason, str) else None,
        )
    if kind == "apply_complete":
        hook = obj.get("hook")
        if not isinstance(hook, dict):
            return None
        elapsed = hook.get("elapsed_seconds")
        return ApplyCompleteEvent(
            **base,
            resource=_resource(hook.get("resource")),
            action=_str(hook.get("action")) or "noop",
            elapsed_seconds=elapsed if isinstance(elapsed, (int, float)) else 0,
        )
    if kind == "change_summary":
        changes = obj.get("changes")
        if not isinstance(changes, dict):
            return None
        counts = ChangeCounts(
            add=_as_int(changes.get("add")),
            change=_as_int(changes.get("change")),
            remove=_as_int(changes.get("remove")),
            import_=_as_int(changes.get("import")),
            operation=_str(changes.get("operation")) or "plan",
        )
        return ChangeSummaryEvent(**base, changes=counts)
    if kind == "outputs":
        outputs = obj.get("outputs")
        return OutputsEvent(**base, outputs=outputs if isinstance(outputs, dict) else {})
    return OtherEvent(**base)


def iter_events(lines: Iterable[str]) -> Iterator[Event]:
    """Yield typed events for every well-formed line, skipping the rest."""

    objects = (_load_object(line) for line in _non_blank(lines))
    events = (decode_event(obj) for obj in objects if obj is not None)
    return (event for event in events if event is not None)


def is_json_lines_stream(lines: Iterable[str]) -> bool:
    """Sample the first non-blank lines and report whether any looks like a tofu JSON message.

    Only the first ``SAMPLE_LINES`` non-blank lines are consumed, so an open
    file handle can be passed without reading it to the end.
    """

    checked = 0
    valid = 0
    for line in _non_blank(lines):
        checked += 1
        if _load_object(line) is not None:
            valid += 1
        if checked >= SAMPLE_LINES:
            break
    return valid > 0


def is_json_lines(text: Optional[str]) -> bool:
    if not text or not text.strip():
        return False
    return is_json_lines_stream(text.split("\n"))


def parse_json_lines_stream(lines: Iterable[str]) -> ParsedLog:
    messages: List[Event] = []
    diagnostics: List[DiagnosticEvent] = []
    planned: List[PlannedChangeEvent] = []
    drifts: List[ResourceDriftEvent] = []
    applied: List[ApplyCompleteEvent] = []
    summary: Optional[ChangeSummaryEvent] = None
    outputs: Optional[OutputsEvent] = None
    has_errors = False

    for event in iter_events(lines):
        messages.append(event)
        if isinstance(event, DiagnosticEvent):
            diagnostics.append(event)
            if event.diagnostic.severity == "error":
                has_errors = True
        elif isinstance(event, PlannedChangeEvent):
            planned.append(event)
        elif isinstance(event, ResourceDriftEvent):
            drifts.append(event)
        elif isinstance(event, ApplyCompleteEvent):
            applied.append(event)
        elif isinstance(event, ChangeSummaryEvent):
            summary = event
        elif isinstance(event, OutputsEvent):
            outputs = event

    return ParsedLog(
        messages=tuple(messages),
        diagnostics=tuple(diagnostics),
        planned_changes=tuple(planned),
        resource_drifts=tuple(drifts),
        apply_completes=tuple(applied),
        change_summary=summary,
        outputs=outputs,
        has_errors=has_errors,
    )


def parse_json_lines(text: Optional[str]) -> ParsedLog:
    if not text:
        return ParsedLog()
    return parse_json_lines_stream(text.split("\n"))
