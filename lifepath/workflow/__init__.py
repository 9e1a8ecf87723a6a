"""Workflow control: branching decisions, retries and the session runner."""

from lifepath.workflow.controller import (
    EndReason,
    Transition,
    TransitionKind,
    WorkflowController,
    end_condition_met,
)
from lifepath.workflow.retry import run_with_retry
from lifepath.workflow.runner import RunOutcome, WorkflowRunner

__all__ = [
    "EndReason",
    "Transition",
    "TransitionKind",
    "WorkflowController",
    "end_condition_met",
    "run_with_retry",
    "RunOutcome",
    "WorkflowRunner",
]
