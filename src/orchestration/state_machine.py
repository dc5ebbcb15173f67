"""Onboarding phase state machine for clients.

Provides declarative phase transitions with callbacks for their side
effects. The Client row is the machine's model and `current_phase` is its
state field, so a transition writes the new phase straight onto the record;
`PhaseTracker` then persists it through the client store, which mirrors the
change into the outbound queue.
"""

from __future__ import annotations

import enum

import structlog
from statemachine import State, StateMachine
from statemachine.exceptions import TransitionNotAllowed

from src.clients.store import ClientStore
from src.models.base import utcnow
from src.models.client import Client, PaymentStatus

logger = structlog.get_logger()

ACTIVE_STATUS = "Aktiv"


class Phase(enum.IntEnum):
    """Onboarding phases in order."""

    ERSTBERATUNG = 1
    RECHNUNG_ANFRAGE = 2
    DOKUMENTE_ZAHLUNG = 3
    ABSCHLUSS = 4


PHASE_LABELS = {
    Phase.ERSTBERATUNG: "Erstberatung",
    Phase.RECHNUNG_ANFRAGE: "Rechnung & Anfrage",
    Phase.DOKUMENTE_ZAHLUNG: "Dokumente & Zahlung",
    Phase.ABSCHLUSS: "Abschluss",
}


class PhaseTransitionError(Exception):
    """Raised when a requested phase change is not permitted."""

    def __init__(self, client_id: int, current: int, target: int, reason: str):
        self.client_id = client_id
        self.current = current
        self.target = target
        self.reason = reason
        super().__init__(
            f"Client {client_id} cannot move from phase {current} to {target}: {reason}"
        )


class PhaseStateMachine(StateMachine):
    """State machine for the client onboarding lifecycle.

    States:
    - erstberatung: initial consultation, always considered complete
    - rechnung_anfrage: invoice sent and creditor letters requested
    - dokumente_zahlung: waiting for documents and the first payment
    - abschluss: engagement finalised

    Transitions:
    - advance: one phase forward; leaving dokumente_zahlung requires both
      documents and the first payment
    - rewind: back to any earlier phase, selected by the `to_phase` argument
    """

    erstberatung = State(initial=True, value=Phase.ERSTBERATUNG.value)
    rechnung_anfrage = State(value=Phase.RECHNUNG_ANFRAGE.value)
    dokumente_zahlung = State(value=Phase.DOKUMENTE_ZAHLUNG.value)
    abschluss = State(value=Phase.ABSCHLUSS.value)

    advance = (
        erstberatung.to(rechnung_anfrage)
        | rechnung_anfrage.to(dokumente_zahlung)
        | dokumente_zahlung.to(abschluss, cond="completion_gate_met")
    )
    rewind = (
        rechnung_anfrage.to(erstberatung)
        | dokumente_zahlung.to(erstberatung, cond="targets_erstberatung")
        | dokumente_zahlung.to(rechnung_anfrage)
        | abschluss.to(erstberatung, cond="targets_erstberatung")
        | abschluss.to(rechnung_anfrage, cond="targets_rechnung_anfrage")
        | abschluss.to(dokumente_zahlung)
    )

    def __init__(self, client: Client) -> None:
        """Initialize the machine at the client's current phase.

        Args:
            client: Client model instance to manage
        """
        self.client = client
        super().__init__(
            model=client,
            state_field="current_phase",
            start_value=client.current_phase or Phase.ERSTBERATUNG.value,
        )

    @property
    def phase(self) -> Phase:
        """Current state as a Phase."""
        return Phase(self.current_state.value)

    # Conditions
    def completion_gate_met(self) -> bool:
        return bool(self.client.documents_uploaded and self.client.first_payment_received)

    def targets_erstberatung(self, to_phase: int) -> bool:
        return to_phase == Phase.ERSTBERATUNG

    def targets_rechnung_anfrage(self, to_phase: int) -> bool:
        return to_phase == Phase.RECHNUNG_ANFRAGE

    # Transition callbacks
    def on_enter_rechnung_anfrage(self, source: State) -> None:
        """Invoice and creditor-letter request go out when phase 2 starts."""
        if source.value < Phase.RECHNUNG_ANFRAGE:
            self.client.email_sent = True

    def on_enter_dokumente_zahlung(self, source: State) -> None:
        if source.value < Phase.DOKUMENTE_ZAHLUNG:
            self.client.status = ACTIVE_STATUS

    def after_advance(self, target: State) -> None:
        self._stamp_entered(target)
        logger.info(
            "client_phase_advanced",
            client_id=self.client.id,
            phase=target.value,
        )

    def after_rewind(self, source: State, target: State) -> None:
        self._stamp_entered(target)
        logger.info(
            "client_phase_rewound",
            client_id=self.client.id,
            from_phase=source.value,
            phase=target.value,
        )

    def _stamp_entered(self, target: State) -> None:
        """Record when the client entered `target`."""
        # Reassign so SQLAlchemy sees the JSON column change.
        dates = dict(self.client.phase_completion_dates or {})
        dates[str(target.value)] = utcnow().isoformat()
        self.client.phase_completion_dates = dates


class PhaseTracker:
    """Applies phase operations to stored clients.

    Forward moves go one phase at a time: a jump further ahead than the next
    phase is clamped to the next phase. Backward jumps to any earlier phase
    are always allowed.
    """

    def __init__(self, store: ClientStore) -> None:
        self.store = store

    async def advance(self, client_id: int) -> Client:
        """Move a client to the next phase; no-op once in Abschluss.

        Raises:
            ClientNotFoundError: Unknown client id.
            PhaseTransitionError: Documents or first payment still missing.
        """
        client = await self.store.get(client_id)
        return await self._advance(client)

    async def jump_to(self, client_id: int, target_phase: int) -> Client:
        """Move a client towards `target_phase`.

        Raises:
            ClientNotFoundError: Unknown client id.
            PhaseTransitionError: Target out of range, or forward move blocked.
        """
        client = await self.store.get(client_id)
        current = client.current_phase
        if target_phase not in {phase.value for phase in Phase}:
            raise PhaseTransitionError(client.id, current, target_phase, "unknown phase")

        if target_phase == current:
            return client
        if target_phase > current:
            if target_phase > current + 1:
                logger.info(
                    "client_phase_jump_clamped",
                    client_id=client.id,
                    requested=target_phase,
                    phase=current + 1,
                )
            return await self._advance(client)

        machine = PhaseStateMachine(client)
        machine.rewind(to_phase=target_phase)
        return await self.store.save(client)

    async def mark_documents_uploaded(self, client_id: int) -> Client:
        """Record that the client uploaded their documents (idempotent)."""
        client = await self.store.get(client_id)
        if client.documents_uploaded:
            return client
        client.documents_uploaded = True
        logger.info("client_documents_uploaded", client_id=client.id)
        return await self.store.save(client)

    async def mark_first_payment_received(self, client_id: int) -> Client:
        """Record receipt of the first installment (idempotent)."""
        client = await self.store.get(client_id)
        if client.first_payment_received:
            return client
        client.first_payment_received = True
        if client.zahlung_status == PaymentStatus.OUTSTANDING.value:
            client.zahlung_status = PaymentStatus.PARTIALLY_PAID.value
        logger.info("client_first_payment_received", client_id=client.id)
        return await self.store.save(client)

    async def _advance(self, client: Client) -> Client:
        current = client.current_phase
        if current >= Phase.ABSCHLUSS:
            return client

        machine = PhaseStateMachine(client)
        try:
            machine.advance()
        except TransitionNotAllowed as exc:
            raise PhaseTransitionError(
                client.id,
                current,
                current + 1,
                "documents and first payment are required before Abschluss",
            ) from exc
        return await self.store.save(client)


__all__ = [
    "PHASE_LABELS",
    "Phase",
    "PhaseStateMachine",
    "PhaseTracker",
    "PhaseTransitionError",
    "TransitionNotAllowed",
]
