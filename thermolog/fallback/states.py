"""Orchestration state definitions: the finite state machine states and transitions."""

from __future__ import annotations

from enum import Enum


class OrchestrationState(str, Enum):
    """States of one fallback orchestration run."""

    PRIMARY = "PRIMARY"
    EVALUATING = "EVALUATING"
    ACCEPTED = "ACCEPTED"
    CASCADING = "CASCADING"
    TERMINAL = "TERMINAL"


# Valid state transitions. Each key maps to a set of states it can transition to.
VALID_TRANSITIONS: dict[OrchestrationState, set[OrchestrationState]] = {
    OrchestrationState.PRIMARY: {OrchestrationState.EVALUATING, OrchestrationState.TERMINAL},
    OrchestrationState.EVALUATING: {
        OrchestrationState.ACCEPTED,
        OrchestrationState.CASCADING,
        OrchestrationState.TERMINAL,
    },
    OrchestrationState.CASCADING: {OrchestrationState.EVALUATING, OrchestrationState.TERMINAL},
    OrchestrationState.ACCEPTED: {OrchestrationState.TERMINAL},
    OrchestrationState.TERMINAL: set(),  # terminal
}

TERMINAL_STATES = {OrchestrationState.TERMINAL}


class OrchestrationError(Exception):
    """Raised when an orchestration run attempts an illegal state transition."""
