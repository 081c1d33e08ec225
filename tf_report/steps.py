"""Reduce a workflow ``steps`` context to a pass/fail verdict."""
from __future__ import annotations

from dataclasses import dataclass, field
from typing import List, Mapping, Optional

# Policy: cancelled and neutral steps are not reported as failures.
NON_FAILURE_CONCLUSIONS = frozenset({"success", "skipped", "cancelled", "neutral"})


@dataclass(frozen=True)
class StepFailure:
    name: str
    conclusion: str
    stdout: Optional[str] = None
    stderr: Optional[str] = None
    exit_code: Optional[str] = None


@dataclass(frozen=True)
class TargetStepResult:
    name: str
    found: bool
    conclusion: Optional[str] = None
    stdout: Optional[str] = None
    stderr: Optional[str] = None
    exit_code: Optional[str] = None


@dataclass(frozen=True)
class AnalysisResult:
    success: bool
    failed_steps: List[StepFailure] = field(default_factory=list)
    total_steps: int = 0
    target_step_result: Optional[TargetStepResult] = None


def _text(value: object) -> Optional[str]:
    if value is None:
        return None
    return value if isinstance(value, str) else str(value)


def step_conclusion(step: Mapping[str, object]) -> str:
    value = step.get("conclusion") or step.get("outcome") or ""
    return str(value)


def is_failure(conclusion: str) -> bool:
    return bool(conclusion) and conclusion not in NON_FAILURE_CONCLUSIONS


def analyze_steps(steps: Mapping[str, Mapping[str, object]], target_step: Optional[str] = None) -> AnalysisResult:
    if not isinstance(steps, Mapping):
        raise TypeError(f"steps must be a JSON object, got {type(steps).__name__}")

    failed: List[StepFailure] = []
    target: Optional[TargetStepResult] = None

    for name, step in steps.items():
        if not isinstance(step, Mapping):
            raise TypeError(f"step {name!r} must be a JSON object, got {type(step).__name__}")
        conclusion = step_conclusion(step)
        outputs = step.get("outputs")
        if not isinstance(outputs, Mapping):
            outputs = {}
        stdout = _text(outputs.get("stdout"))
        stderr = _text(outputs.get("stderr"))
        exit_code = _text(outputs.get("exit_code"))

        if target_step and name == target_step:
            target = TargetStepResult(
                name=name,
                found=True,
                conclusion=conclusion,
                stdout=stdout,
                stderr=stderr,
                exit_code=exit_code,
            )

        if is_failure(conclusion):
            failed.append(
                StepFailure(
                    name=name,
                    conclusion=conclusion,
                    stdout=stdout,
                    stderr=stderr,
                    exit_code=exit_code,
                )
            )

    if target_step and target is None:
        target = TargetStepResult(name=target_step, found=False)

    return AnalysisResult(
        success=not failed,
        failed_steps=failed,
        total_steps=len(steps),
        target_step_result=target,
    )
