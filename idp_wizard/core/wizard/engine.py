"""Wizard orchestration engine.

Drives one wizard session: gates navigation on step validity, runs the
metadata validation call and the final create call against a
FederationGateway, and records their outcome. All state lives in a single
WizardState mutated only here.
"""
from __future__ import annotations
import logging
import threading
from typing import Any, Optional

from ..exceptions import (
    ConfigurationError,
    GatewayFault,
    NavigationRejected,
    OperationInProgress,
    WizardClosed,
)
from ..gateway import FederationGateway
from .providers import WizardDefinition, make_alias
from .state import (
    OperationOutcome,
    OutcomeState,
    StepDescriptor,
    StepKind,
    ValidationResult,
    WizardState,
)

logger = logging.getLogger(__name__)


def validate_steps(steps: tuple[StepDescriptor, ...]) -> None:
    """Check a step sequence before a wizard is built on it.

    Raises:
        ConfigurationError: On an empty sequence, non-positive or
            non-increasing ids, or a misplaced confirmation step
    """
    if not steps:
        raise ConfigurationError("Wizard has no steps")
    previous = 0
    for step in steps:
        if step.id <= previous:
            raise ConfigurationError(f"Step ids must be positive and strictly increasing (got {step.id} after {previous})")
        previous = step.id
    confirmations = [step for step in steps if step.kind is StepKind.CONFIRMATION]
    if len(confirmations) != 1 or steps[-1].kind is not StepKind.CONFIRMATION:
        raise ConfigurationError("Wizard must end with exactly one confirmation step")


class WizardEngine:
    """Single-owner state machine for one onboarding session.

    Mutating calls are serialized by an internal lock. Gateway calls run
    outside the lock so close() stays responsive; a result arriving after
    close() is discarded.
    """

    def __init__(
        self,
        definition: WizardDefinition,
        gateway: FederationGateway,
        tenant: str,
        *,
        timeout: Optional[float] = None,
        alias: Optional[str] = None,
    ):
        """Build a wizard session.

        Args:
            definition: Step definition set for the provider
            gateway: Federation gateway used for import and create
            tenant: Realm receiving the provider
            timeout: Deadline in seconds applied to every gateway call
            alias: Provider alias (generated from the definition when omitted)

        Raises:
            ConfigurationError: If the definition's steps are malformed
        """
        validate_steps(definition.steps)
        self.definition = definition
        self.gateway = gateway
        self.tenant = tenant
        self.timeout = timeout
        self.alias = alias or make_alias(definition.alias_preface)
        self.created_id: Optional[str] = None
        self.completed = False
        self._lock = threading.RLock()
        self._state: Optional[WizardState] = WizardState.start(definition.steps)
        self._generation = 0
        self._external_call = False

    @property
    def closed(self) -> bool:
        return self._state is None

    def snapshot(self) -> WizardState:
        with self._lock:
            return self._require_state().copy()

    def _require_state(self) -> WizardState:
        if self._state is None:
            raise WizardClosed("Wizard session is closed")
        return self._state

    def _next_step_id(self, state: WizardState) -> int:
        ids = [step.id for step in state.steps]
        index = ids.index(state.current_step_id)
        if index + 1 < len(ids):
            return ids[index + 1]
        return state.finish_step_id

    # ─────────────────────────────────────────────────────────────────────
    # Navigation
    # ─────────────────────────────────────────────────────────────────────
    def advance(self, target_step_id: int) -> int:
        """Move to another step.

        A step is reachable if it was reached before, or if it is the next
        step and the current one is valid. Advancing to the finish id
        completes and closes the wizard.

        Raises:
            NavigationRejected: If the target is not reachable
            WizardClosed: If the wizard was closed
        """
        with self._lock:
            state = self._require_state()

            if target_step_id == state.finish_step_id:
                if state.high_water_step_id < state.finish_step_id:
                    raise NavigationRejected("Finish is available once the provider has been created")
                self.completed = True
                self._release()
                logger.info("Wizard %s for realm %s finished", self.alias, self.tenant)
                return target_step_id

            if not state.has_step(target_step_id):
                raise NavigationRejected(f"Step {target_step_id} does not exist")
            if target_step_id == state.current_step_id:
                return target_step_id

            revisit = target_step_id <= state.high_water_step_id
            if not revisit:
                if target_step_id != self._next_step_id(state):
                    raise NavigationRejected(f"Step {target_step_id} has not been reached yet")
                if not state.current_step_valid:
                    raise NavigationRejected(f"Step {state.current_step_id} is not complete")

            state.step_validity[state.current_step_id] = state.current_step_valid
            state.current_step_id = target_step_id
            if revisit:
                state.current_step_valid = state.step_validity.get(target_step_id, False)
            else:
                state.high_water_step_id = target_step_id
                state.current_step_valid = not state.step(target_step_id).requires_validation
                state.step_validity[target_step_id] = state.current_step_valid
            return target_step_id

    def report_validity(self, step_id: int, valid: bool) -> bool:
        """Record validity reported by step content.

        Returns:
            False if the report was stale (not the current step) and dropped
        """
        with self._lock:
            if self._state is None or step_id != self._state.current_step_id:
                logger.debug("Dropping stale validity report for step %s", step_id)
                return False
            self._state.current_step_valid = bool(valid)
            self._state.step_validity[step_id] = bool(valid)
            return True

    def record_inputs(self, step_id: int, **values: Any) -> bool:
        """Store operator inputs (e.g. LDAP credentials) for the current step.

        Values are passed through to the gateway unchanged.

        Returns:
            False if the step is not current and the inputs were dropped
        """
        with self._lock:
            if self._state is None or step_id != self._state.current_step_id:
                logger.debug("Dropping stale inputs for step %s", step_id)
                return False
            self._state.inputs.update(values)
            return True

    # ─────────────────────────────────────────────────────────────────────
    # External calls
    # ─────────────────────────────────────────────────────────────────────
    def submit_external_validation(self, url: str) -> ValidationResult:
        """Validate IdP metadata by importing it through the gateway.

        Gateway faults never escape: they mark the step invalid and are
        returned as an error result.

        Raises:
            NavigationRejected: If the current step is not a validation step
            OperationInProgress: If another gateway call is outstanding
            WizardClosed: If the wizard was closed
        """
        name = self.definition.common_name
        with self._lock:
            state = self._require_state()
            step = state.current_step
            if step.kind is not StepKind.VALIDATION:
                raise NavigationRejected(f"Step {step.id} does not accept metadata validation")
            if self._external_call:
                raise OperationInProgress("Another request is already in progress")
            self._external_call = True
            generation = self._generation
            state.validation_url = url

        fault: Optional[GatewayFault] = None
        metadata: dict[str, Any] = {}
        try:
            metadata = self.gateway.import_from_url(url, self.definition.kind, self.tenant, timeout=self.timeout)
        except GatewayFault as exc:
            fault = exc
        except Exception as exc:
            logger.error("Unexpected error importing %s metadata", name, exc_info=True)
            fault = GatewayFault(str(exc))

        with self._lock:
            self._external_call = False
            if self._state is None or generation != self._generation:
                logger.info("Discarding metadata validation result for closed wizard %s", self.alias)
                return ValidationResult("error", "Wizard was closed before validation completed.")

            state = self._state
            if fault is None:
                pending = dict(self.definition.config_defaults)
                pending.update(metadata)
                state.pending_config = pending
                result = ValidationResult(
                    "success",
                    f"Configuration successfully validated with {name}. Continue to next step.",
                )
            else:
                logger.warning("Metadata validation with %s failed: %s", name, fault)
                state.pending_config = None
                result = ValidationResult(
                    "error",
                    f"Configuration validation failed with {name}. Check URL and try again.",
                )

            state.step_validity[step.id] = result.ok
            if state.current_step_id == step.id:
                state.current_step_valid = result.ok
            state.validation = result
            return result

    def finalize(self) -> OperationOutcome:
        """Create the provider through the gateway.

        Success makes the finish step reachable and blocks resubmission.
        Failure keeps the operator on the confirmation step with a message;
        retry is allowed.

        Raises:
            NavigationRejected: If not on the confirmation step, or required
                inputs/metadata are missing
            OperationInProgress: While a call is outstanding or after success
            WizardClosed: If the wizard was closed
        """
        name = self.definition.common_name
        with self._lock:
            state = self._require_state()
            if state.current_step.kind is not StepKind.CONFIRMATION:
                raise NavigationRejected(f"{name} can only be created from the confirmation step")
            if state.outcome.state is OutcomeState.IN_FLIGHT or self._external_call:
                raise OperationInProgress(f"Creation of {name} is already in progress")
            if state.outcome.state is OutcomeState.SUCCEEDED:
                raise OperationInProgress(f"{name} has already been created")

            config = self.definition.build_config(self.definition, self.alias, state)
            state.outcome = OperationOutcome(OutcomeState.IN_FLIGHT, f"Creating {name}...", resubmit_allowed=False)
            self._external_call = True
            generation = self._generation

        fault: Optional[GatewayFault] = None
        created_id = None
        try:
            created_id = self.gateway.create(config, self.tenant, timeout=self.timeout)
        except GatewayFault as exc:
            fault = exc
        except Exception as exc:
            logger.error("Unexpected error creating %s", name, exc_info=True)
            fault = GatewayFault(str(exc))

        if fault is None:
            outcome = OperationOutcome(
                OutcomeState.SUCCEEDED,
                f"{name} created successfully. Click finish.",
                resubmit_allowed=False,
            )
        else:
            logger.warning("Creating %s in realm %s failed: %s", name, self.tenant, fault)
            outcome = OperationOutcome(OutcomeState.FAILED, f"Error creating {name}: {fault.message}")

        with self._lock:
            self._external_call = False
            if self._state is None or generation != self._generation:
                logger.info("Discarding create result for closed wizard %s", self.alias)
                return outcome

            state = self._state
            state.outcome = outcome
            if fault is None:
                self.created_id = created_id
                state.high_water_step_id = state.finish_step_id
            return OperationOutcome(outcome.state, outcome.message, outcome.resubmit_allowed)

    # ─────────────────────────────────────────────────────────────────────
    # Teardown
    # ─────────────────────────────────────────────────────────────────────
    def close(self) -> None:
        """Release the wizard state. Idempotent."""
        with self._lock:
            if self._state is not None:
                logger.info("Closing wizard %s for realm %s", self.alias, self.tenant)
            self._release()

    def _release(self) -> None:
        self._state = None
        self._generation += 1
        self._external_call = False
