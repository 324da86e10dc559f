"""Contract and Payment State Machine Guards.

Uses python-statemachine to enforce legal state transitions at the domain level.
No matter what the API or a background sweep asks for, an illegal transition
(e.g., CANCELLED -> ACTIVE) raises TransitionNotAllowed, which the services
convert to InvalidTransitionError.

A machine is instantiated per entity at its persisted status and is fired
before the ORM row's status column is updated.

Contract transition table:
    DRAFT              -> AWAITING_SIGNATURE (submit_for_signature)
    AWAITING_SIGNATURE -> SIGNED             (complete_signatures)
    SIGNED             -> ACTIVE             (retraction_elapsed)
    SIGNED             -> CANCELLED          (retract)
    DRAFT              -> CANCELLED          (withdraw)
    AWAITING_SIGNATURE -> CANCELLED          (withdraw)
    ACTIVE             -> TERMINATED         (terminate)

Payment transition table:
    PENDING    -> PROCESSING (begin_processing)
    PROCESSING -> ESCROW     (provider_confirmed)
    PROCESSING -> FAILED     (provider_failed)
    PENDING    -> CONFIRMED  (record_cash)
    ESCROW     -> CONFIRMED  (release_funds)
    ESCROW     -> DISPUTED   (open_dispute)
    ESCROW     -> REFUNDED   (refund_payment)
    DISPUTED   -> REFUNDED   (refund_payment)
    DISPUTED   -> CONFIRMED  (resolve_for_beneficiary)
"""

from __future__ import annotations

from statemachine import State, StateMachine
from statemachine.exceptions import TransitionNotAllowed

from realty_escrow.domain.exceptions import InvalidTransitionError


def _check_status(machine_cls: type[StateMachine], current_status: str) -> None:
    valid_values = {s.value for s in machine_cls.states}
    if current_status not in valid_values:
        valid = ", ".join(sorted(valid_values))
        raise ValueError(f"Unknown status '{current_status}'. Valid states: {valid}")


class ContractStateMachine(StateMachine):
    """Guards the contract lifecycle.

    Usage:
        sm = ContractStateMachine(current_status="SIGNED")
        sm.retraction_elapsed()  # transitions to ACTIVE
        sm.status                # "ACTIVE"
    """

    # --- States ---
    DRAFT = State("DRAFT", initial=True)
    AWAITING_SIGNATURE = State("AWAITING_SIGNATURE")
    SIGNED = State("SIGNED")
    ACTIVE = State("ACTIVE")
    CANCELLED = State("CANCELLED", final=True)
    TERMINATED = State("TERMINATED", final=True)

    # --- Events / Transitions ---

    # Signature protocol
    submit_for_signature = DRAFT.to(AWAITING_SIGNATURE)
    complete_signatures = AWAITING_SIGNATURE.to(SIGNED)

    # Retraction window outcomes
    retraction_elapsed = SIGNED.to(ACTIVE)
    retract = SIGNED.to(CANCELLED)

    # Owner pulls an unsigned contract
    withdraw = DRAFT.to(CANCELLED) | AWAITING_SIGNATURE.to(CANCELLED)

    # End of an active contract
    terminate = ACTIVE.to(TERMINATED)

    def __init__(self, current_status: str = "DRAFT") -> None:
        _check_status(type(self), current_status)
        super().__init__(start_value=current_status)

    @property
    def status(self) -> str:
        return str(self.current_state.value)

    def get_allowed_events(self) -> list[str]:
        """Return the event names that can fire from the current state."""
        return [event.id for event in self.allowed_events]


class PaymentStateMachine(StateMachine):
    """Guards the payment lifecycle, including the escrow hold.

    CONFIRMED, REFUNDED and FAILED are final. DISPUTED has no release edge
    other than an explicit resolution, which is what freezes auto-release.
    """

    # --- States ---
    PENDING = State("PENDING", initial=True)
    PROCESSING = State("PROCESSING")
    ESCROW = State("ESCROW")
    DISPUTED = State("DISPUTED")
    FAILED = State("FAILED", final=True)
    CONFIRMED = State("CONFIRMED", final=True)
    REFUNDED = State("REFUNDED", final=True)

    # --- Events / Transitions ---

    # Mobile-money collection
    begin_processing = PENDING.to(PROCESSING)
    provider_confirmed = PROCESSING.to(ESCROW)
    provider_failed = PROCESSING.to(FAILED)

    # Cash bypasses the rail and the hold
    record_cash = PENDING.to(CONFIRMED)

    # Escrow outcomes
    release_funds = ESCROW.to(CONFIRMED)
    open_dispute = ESCROW.to(DISPUTED)
    refund_payment = ESCROW.to(REFUNDED) | DISPUTED.to(REFUNDED)
    resolve_for_beneficiary = DISPUTED.to(CONFIRMED)

    def __init__(self, current_status: str = "PENDING") -> None:
        _check_status(type(self), current_status)
        super().__init__(start_value=current_status)

    @property
    def status(self) -> str:
        return str(self.current_state.value)

    def get_allowed_events(self) -> list[str]:
        """Return the event names that can fire from the current state."""
        return [event.id for event in self.allowed_events]


def apply_event(
    machine_cls: type[ContractStateMachine] | type[PaymentStateMachine],
    current_status: str,
    event_name: str,
) -> str:
    """Fire `event_name` on a throwaway machine and return the resulting status.

    Raises:
        InvalidTransitionError: If the event is unknown or not allowed from
            `current_status`.
        ValueError: If `current_status` is not a state of the machine.
    """
    sm = machine_cls(current_status=current_status)
    event_method = getattr(sm, event_name, None)
    if event_method is None or not callable(event_method):
        raise InvalidTransitionError(current_status, event_name)
    try:
        event_method()
    except TransitionNotAllowed as err:
        raise InvalidTransitionError(current_status, event_name) from err
    return sm.status

