"""Pure job lifecycle rules: ordering, terminality, step rendering and transitions."""

from __future__ import annotations

from typing import Any, Union

from srtflow.core.constants import (
    PIPELINE_STEPS,
    STATUS_ORDINALS,
    TERMINAL_STATES,
    JobStatus,
    StepState,
)
from srtflow.core.errors import ValidationError
from srtflow.schemas.job import StepOut

StatusLike = Union[JobStatus, str]


def parse_status(value: StatusLike) -> JobStatus:
    if isinstance(value, JobStatus):
        return value
    raw = str(value or "").strip().lower()
    for status in JobStatus:
        if status.value == raw:
            return status
    raise ValidationError(f"unrecognized job status: {value!r}")


def ordinal(status: StatusLike) -> int:
    return STATUS_ORDINALS[parse_status(status)]


def is_terminal(status: StatusLike) -> bool:
    return parse_status(status) in TERMINAL_STATES


def step_state(step: StatusLike, current: StatusLike) -> StepState:
    """Render one display step against the job's current status.

    Once a job is in `error` every pipeline step is shown as reached and only
    the error step is marked failed, so a late failure does not look like
    lost progress.
    """
    step = parse_status(step)
    current = parse_status(current)

    if current == JobStatus.ERROR:
        return StepState.FAILED if step == JobStatus.ERROR else StepState.DONE

    current_pos = STATUS_ORDINALS[current]
    step_pos = STATUS_ORDINALS[step]
    if current_pos > step_pos:
        return StepState.DONE
    if current_pos == step_pos:
        return StepState.DONE if current == JobStatus.COMPLETED else StepState.ACTIVE
    return StepState.PENDING


def display_steps(current: StatusLike) -> list[StepOut]:
    current = parse_status(current)
    if current == JobStatus.ERROR:
        steps = [step for step in PIPELINE_STEPS if step != JobStatus.COMPLETED] + [JobStatus.ERROR]
    else:
        steps = list(PIPELINE_STEPS)

    rendered: list[StepOut] = []
    for step in steps:
        reached = current == JobStatus.ERROR or STATUS_ORDINALS[current] >= STATUS_ORDINALS[step]
        rendered.append(StepOut(status=step, state=step_state(step, current), reached=reached))
    return rendered


def validate_transition(current: StatusLike, new: StatusLike) -> None:
    current = parse_status(current)
    new = parse_status(new)

    if current in TERMINAL_STATES:
        raise ValidationError(f"job is already {current.value}; cannot move to {new.value}")
    if new == JobStatus.UPLOADING:
        raise ValidationError("uploading is a client-side state and is never persisted")
    if new == JobStatus.ERROR:
        return
    if STATUS_ORDINALS[new] < STATUS_ORDINALS[current]:
        raise ValidationError(f"status cannot move backwards: {current.value} -> {new.value}")


def check_invariants(job: Any) -> None:
    """Validate the terminal-field invariants of a job-like object."""
    status = parse_status(job.status)
    has_result = bool(job.result_ref)
    has_error = bool(job.error_message)

    if status == JobStatus.COMPLETED:
        if not has_result or has_error:
            raise ValidationError("completed job must carry result_ref and no error_message")
    elif status == JobStatus.ERROR:
        if not has_error or has_result:
            raise ValidationError("failed job must carry error_message and no result_ref")
    elif has_result or has_error:
        raise ValidationError(f"{status.value} job cannot carry result_ref or error_message")

    if (status in TERMINAL_STATES) != (job.completed_at is not None):
        raise ValidationError("completed_at must be set exactly when the job is terminal")
