"""Lifecycle guards for escrows, agreements, access requests and listings.

Uses python-statemachine to enforce legal state transitions at the domain
level. Whatever a route or a provider callback asks for, an illegal move
(e.g. initiated -> completed) raises TransitionNotAllowed here, before the
ORM row's status is touched.

Machines are instantiated per record at its current status, fired once, and
discarded.

Escrow:
    initiated -> funded        (confirm_payment)
    funded    -> completed     (release_funds)
    initiated -> disputed      (open_dispute)
    funded    -> disputed      (open_dispute)
    initiated -> cancelled     (cancel_escrow)

Agreement:
    sent      -> delivered     (mark_delivered)
    delivered -> completed     (mark_completed)
    sent      -> declined      (mark_declined)
    delivered -> declined      (mark_declined)
    sent      -> voided        (mark_voided)
    delivered -> voided        (mark_voided)

Access request:
    pending   -> approved      (approve_request)
    pending   -> rejected      (reject_request)

Listing:
    draft     -> pending       (submit_for_review)
    pending   -> approved      (approve_listing)
    pending   -> draft         (reject_listing)
    approved  -> live          (publish)
    approved  -> sold          (mark_sold)
    live      -> sold          (mark_sold)
"""

from __future__ import annotations

from statemachine import State, StateMachine
from statemachine.exceptions import TransitionNotAllowed

from igaming_exchange.domain.exceptions import InvalidStateTransitionError


class _StatusMachineMixin:
    """Start a machine at a stored status string and expose it back as a string."""

    entity: str = "record"

    def __init__(self, current_status: str) -> None:
        valid_values = {s.value for s in self.states}
        if current_status not in valid_values:
            valid = ", ".join(sorted(valid_values))
            raise ValueError(
                f"Unknown {self.entity} status '{current_status}'. Valid states: {valid}"
            )
        super().__init__(start_value=current_status)

    @property
    def status(self) -> str:
        return str(self.current_state.value)

    def get_allowed_events(self) -> list[str]:
        """Return the event names that can fire from the current state."""
        return [event.id for event in self.allowed_events]


class EscrowStateMachine(_StatusMachineMixin, StateMachine):
    """Guards fund custody. ``completed`` is only reachable from ``funded``.

    Usage:
        sm = EscrowStateMachine("funded")
        sm.release_funds()
        sm.status  # "completed"
    """

    entity = "escrow"

    initiated = State("Initiated", value="initiated", initial=True)
    funded = State("Funded", value="funded")
    completed = State("Completed", value="completed", final=True)
    disputed = State("Disputed", value="disputed", final=True)
    cancelled = State("Cancelled", value="cancelled", final=True)

    confirm_payment = initiated.to(funded)
    release_funds = funded.to(completed)
    open_dispute = initiated.to(disputed) | funded.to(disputed)
    cancel_escrow = initiated.to(cancelled)


class AgreementStateMachine(_StatusMachineMixin, StateMachine):
    """Guards e-signature envelope status as reported by the provider."""

    entity = "agreement"

    sent = State("Sent", value="sent", initial=True)
    delivered = State("Delivered", value="delivered")
    completed = State("Completed", value="completed", final=True)
    declined = State("Declined", value="declined", final=True)
    voided = State("Voided", value="voided", final=True)

    mark_delivered = sent.to(delivered)
    mark_completed = delivered.to(completed)
    mark_declined = sent.to(declined) | delivered.to(declined)
    mark_voided = sent.to(voided) | delivered.to(voided)


class AccessRequestStateMachine(_StatusMachineMixin, StateMachine):
    """A seller decides a buyer's access request exactly once."""

    entity = "access request"

    pending = State("Pending", value="pending", initial=True)
    approved = State("Approved", value="approved", final=True)
    rejected = State("Rejected", value="rejected", final=True)

    approve_request = pending.to(approved)
    reject_request = pending.to(rejected)


class ListingStateMachine(_StatusMachineMixin, StateMachine):
    """Publication lifecycle of a listing."""

    entity = "listing"

    draft = State("Draft", value="draft", initial=True)
    pending = State("Pending", value="pending")
    approved = State("Approved", value="approved")
    live = State("Live", value="live")
    sold = State("Sold", value="sold", final=True)

    submit_for_review = draft.to(pending)
    approve_listing = pending.to(approved)
    reject_listing = pending.to(draft)
    publish = approved.to(live)
    mark_sold = approved.to(sold) | live.to(sold)


def validate_transition(
    machine_cls: type[_StatusMachineMixin],
    current_status: str,
    event_name: str,
) -> str:
    """Fire ``event_name`` on a throwaway machine and return the new status.

    Raises:
        TransitionNotAllowed: If the event cannot fire from ``current_status``.
        ValueError: If the status or event name is unknown.
    """
    sm = machine_cls(current_status)

    event_method = getattr(sm, event_name, None)
    if event_name not in {e.id for e in sm.events} or not callable(event_method):
        raise ValueError(
            f"Unknown event '{event_name}'. "
            f"Allowed events from {current_status}: {sm.get_allowed_events()}"
        )

    event_method()
    return sm.status


def apply_event(
    machine_cls: type[_StatusMachineMixin],
    current_status: str,
    event_name: str,
) -> str:
    """Service-facing guard: like ``validate_transition`` but raises a domain error.

    Raises:
        InvalidStateTransitionError: If the event cannot fire from ``current_status``.
    """
    try:
        return validate_transition(machine_cls, current_status, event_name)
    except TransitionNotAllowed as err:
        raise InvalidStateTransitionError(machine_cls.entity, current_status, event_name) from err
