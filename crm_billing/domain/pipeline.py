"""Sales pipeline steps and status-change history"""

import uuid
from dataclasses import dataclass
from datetime import date
from typing import List, Optional

from crm_billing.domain.exceptions import InvalidPipelineTransitionError
from crm_billing.domain.models import PipelineHistoryEntry, PipelineStatus


@dataclass(frozen=True)
class PipelineStep:
    status: PipelineStatus
    label: str
    description: str
    needs_date: Optional[str] = None  # "r1" or "r2"


MAIN_STEPS: List[PipelineStep] = [
    PipelineStep(PipelineStatus.PROSPECT, "Prospect", "Contact identifié"),
    PipelineStep(PipelineStatus.R1_SCHEDULED, "R1 Planifié", "RDV 15min pris par le client", needs_date="r1"),
    PipelineStep(PipelineStatus.R1_DONE, "R1 Réalisé", "RDV 15min effectué"),
    PipelineStep(PipelineStatus.QUALIFIED, "Qualifié", "Client éligible au closing"),
    PipelineStep(PipelineStatus.R2_SCHEDULED, "R2 Planifié", "RDV closing planifié", needs_date="r2"),
    PipelineStep(PipelineStatus.R2_DONE, "R2 Réalisé", "RDV closing effectué"),
    PipelineStep(PipelineStatus.CLOSED_WON, "Closé Gagné", "Deal signé"),
]

TERMINAL_STEPS: List[PipelineStep] = [
    PipelineStep(PipelineStatus.NOT_QUALIFIED, "Non Qualifié", "Client non éligible après R1"),
    PipelineStep(PipelineStatus.CLOSED_LOST, "Closé Perdu", "Deal non signé"),
]

MAIN_ORDER = [step.status for step in MAIN_STEPS]


def get_step(status: PipelineStatus) -> PipelineStep:
    for step in MAIN_STEPS + TERMINAL_STEPS:
        if step.status == status:
            return step
    raise InvalidPipelineTransitionError(f"Unknown pipeline status {status!r}")


def step_index(status: PipelineStatus) -> int:
    """Position in the main sequence, -1 for terminal statuses"""
    status = PipelineStatus(status)
    return MAIN_ORDER.index(status) if status in MAIN_ORDER else -1


def is_terminal(status: PipelineStatus) -> bool:
    return PipelineStatus(status) in (PipelineStatus.NOT_QUALIFIED, PipelineStatus.CLOSED_LOST)


def build_history_entry(
    contact_id: uuid.UUID,
    current_status: PipelineStatus,
    new_status: PipelineStatus,
    notes: Optional[str] = None,
    r1_date: Optional[date] = None,
    r2_date: Optional[date] = None,
) -> PipelineHistoryEntry:
    """
    History record for moving a contact to `new_status`.

    Any step can be reached from any other; only staying on the same status is
    rejected. Appointment dates are kept only on the step that schedules them.
    """
    new_status = PipelineStatus(new_status)
    if PipelineStatus(current_status) == new_status:
        raise InvalidPipelineTransitionError(f"Contact is already at {new_status.value}")

    step = get_step(new_status)
    return PipelineHistoryEntry(
        contact_id=contact_id,
        status=new_status,
        notes=notes or None,
        r1_date=r1_date if step.needs_date == "r1" else None,
        r2_date=r2_date if step.needs_date == "r2" else None,
    )
