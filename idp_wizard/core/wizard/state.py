"""Wizard state objects.

WizardState is owned by WizardEngine; step content never mutates it
directly, it only reports validity and inputs through the engine.
"""
from __future__ import annotations
import copy
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Optional


class StepKind(str, Enum):
    CONTENT = "content"
    VALIDATION = "validation"
    CONFIRMATION = "confirmation"


class OutcomeState(str, Enum):
    IDLE = "idle"
    IN_FLIGHT = "in_flight"
    SUCCEEDED = "succeeded"
    FAILED = "failed"


@dataclass(frozen=True)
class StepDescriptor:
    """One step of a wizard.

    Steps that do not require validation (instructions only) are valid as
    soon as they are entered.
    """
    id: int
    name: str
    kind: StepKind = StepKind.CONTENT
    requires_validation: bool = True
    hide_back: bool = False

    def is_reachable(self, state: "WizardState") -> bool:
        return state.high_water_step_id >= self.id

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "name": self.name,
            "kind": self.kind.value,
            "requires_validation": self.requires_validation,
            "hide_back": self.hide_back,
        }


@dataclass
class OperationOutcome:
    """Result of the terminal create call."""
    state: OutcomeState = OutcomeState.IDLE
    message: str = ""
    resubmit_allowed: bool = True

    def to_dict(self) -> dict[str, Any]:
        return {
            "state": self.state.value,
            "message": self.message,
            "resubmit_allowed": self.resubmit_allowed,
        }


@dataclass
class ValidationResult:
    status: str
    message: str

    @property
    def ok(self) -> bool:
        return self.status == "success"

    def to_dict(self) -> dict[str, str]:
        return {"status": self.status, "message": self.message}


@dataclass
class WizardState:
    steps: tuple[StepDescriptor, ...]
    current_step_id: int
    high_water_step_id: int
    current_step_valid: bool = False
    step_validity: dict[int, bool] = field(default_factory=dict)
    inputs: dict[str, Any] = field(default_factory=dict)
    pending_config: Optional[dict[str, Any]] = None
    validation_url: str = ""
    validation: Optional[ValidationResult] = None
    outcome: OperationOutcome = field(default_factory=OperationOutcome)

    @classmethod
    def start(cls, steps: tuple[StepDescriptor, ...]) -> "WizardState":
        first = steps[0]
        valid = not first.requires_validation
        return cls(
            steps=steps,
            current_step_id=first.id,
            high_water_step_id=first.id,
            current_step_valid=valid,
            step_validity={first.id: valid},
        )

    @property
    def last_step(self) -> StepDescriptor:
        return self.steps[-1]

    @property
    def finish_step_id(self) -> int:
        """Pseudo-step one past the last step, reachable after a successful create."""
        return self.last_step.id + 1

    @property
    def current_step(self) -> StepDescriptor:
        return self.step(self.current_step_id)

    def step(self, step_id: int) -> StepDescriptor:
        for step in self.steps:
            if step.id == step_id:
                return step
        raise KeyError(step_id)

    def has_step(self, step_id: int) -> bool:
        return any(step.id == step_id for step in self.steps)

    def copy(self) -> "WizardState":
        return copy.deepcopy(self)

    def to_dict(self) -> dict[str, Any]:
        """Public view of the state. Operator inputs are not echoed back."""
        return {
            "steps": [
                dict(step.to_dict(), reachable=step.is_reachable(self))
                for step in self.steps
            ],
            "current_step_id": self.current_step_id,
            "high_water_step_id": self.high_water_step_id,
            "current_step_valid": self.current_step_valid,
            "finish_enabled": self.high_water_step_id >= self.finish_step_id,
            "validation_url": self.validation_url,
            "validation": self.validation.to_dict() if self.validation else None,
            "outcome": self.outcome.to_dict(),
        }
