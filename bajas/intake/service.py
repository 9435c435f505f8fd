"""Request intake: validate, decide, record the audit trail, answer the requester."""

from __future__ import annotations

import logging
from collections.abc import Sequence
from dataclasses import dataclass, field
from datetime import date

from bajas.core.logging import request_context
from bajas.db.connection import SessionFactory, get_session
from bajas.db.requests import record_request
from bajas.eligibility.engine import GENERIC_ERROR_MESSAGE, EligibilityEngine
from bajas.models import Decision, DecisionOutcome, DisqualificationRequest

logger = logging.getLogger(__name__)

USER_MESSAGES = {
    DecisionOutcome.APPROVE: "Cliente puede ser inhabilitado",
    DecisionOutcome.REJECT: "Cliente NO puede ser inhabilitado",
    DecisionOutcome.MANUAL_REVIEW: "Solicitud derivada a revisión manual",
    DecisionOutcome.ERROR: GENERIC_ERROR_MESSAGE,
}

MANUAL_REVIEW_STEPS = (
    "Su solicitud ha sido registrada",
    "Será revisada por el equipo de Inteligencia Comercial",
    "Recibirá una respuesta en 24-48 horas",
    "Consulte con su supervisor para más información",
)


@dataclass
class SubmissionResult:
    """What the request layer returns to the requester and logs."""

    decision: Decision
    request: DisqualificationRequest
    message: str
    audit_recorded: bool
    request_id: int | None = None
    next_steps: tuple[str, ...] = field(default_factory=tuple)

    @property
    def outcome(self) -> DecisionOutcome:
        return self.decision.outcome

    @property
    def detail(self) -> str | None:
        """Explanation safe to show; ERROR details stay in the server logs."""
        if self.decision.outcome == DecisionOutcome.ERROR:
            return None
        return self.decision.explanation


def validate_submission(
    client_code: str,
    reason: str,
    evidence: Sequence[str],
    max_evidence_files: int = 5,
) -> None:
    """Raise ValueError on a request that must not reach the engine."""
    if not (client_code or "").strip():
        raise ValueError("El código de cliente es requerido")
    if not (reason or "").strip():
        raise ValueError("El motivo es requerido")
    if not evidence:
        raise ValueError("Debe adjuntar al menos una foto de evidencia")
    if len(evidence) > max_evidence_files:
        raise ValueError(f"Máximo {max_evidence_files} fotos de evidencia")


async def submit_request(
    engine: EligibilityEngine,
    client_code: str,
    reason: str,
    evidence: Sequence[str],
    source_ip: str | None = None,
    today: date | None = None,
    session_factory: SessionFactory = get_session,
    max_evidence_files: int = 5,
) -> SubmissionResult:
    """Decide on a disqualification request and append it to the audit trail.

    The decision is returned even when the audit write fails; that failure
    is logged and reported through ``audit_recorded``.

    Args:
        engine: Eligibility engine bound to a storage adapter
        client_code: Client code as typed by the requester
        reason: Reason name from the catalogue
        evidence: References (paths/URLs) of the uploaded photos
        source_ip: Requester address, kept in the audit record
        today: Reference date (tests); defaults to the business date
        session_factory: Session context for the audit write

    Raises:
        ValueError: If code or reason are blank, or the evidence count is out of range
    """
    validate_submission(client_code, reason, evidence, max_evidence_files)

    with request_context(client_code=client_code.strip(), reason=reason.strip()):
        decision = await engine.decide(client_code, reason, today=today)
        request = DisqualificationRequest.from_decision(
            decision, evidence=list(evidence), source_ip=source_ip
        )

        request_id: int | None = None
        audit_recorded = True
        try:
            async with session_factory() as session:
                row = await record_request(session, request)
                request_id = row.id
        except Exception as e:
            audit_recorded = False
            logger.error(
                f"Audit record for client {decision.client_code} not written: {e}",
                exc_info=True,
            )

        if decision.outcome == DecisionOutcome.ERROR:
            logger.error(f"Request for client {decision.client_code} ended in ERROR: {decision.explanation}")

        return SubmissionResult(
            decision=decision,
            request=request,
            message=USER_MESSAGES[decision.outcome],
            audit_recorded=audit_recorded,
            request_id=request_id,
            next_steps=MANUAL_REVIEW_STEPS if decision.outcome == DecisionOutcome.MANUAL_REVIEW else (),
        )
