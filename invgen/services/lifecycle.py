"""Invoice status state machine."""
from typing import Dict, FrozenSet

from invgen.models.invoice import InvoiceStatus

ALLOWED_TRANSITIONS: Dict[InvoiceStatus, FrozenSet[InvoiceStatus]] = {
    InvoiceStatus.DRAFT: frozenset({InvoiceStatus.SENT, InvoiceStatus.CANCELLED}),
    InvoiceStatus.SENT: frozenset({InvoiceStatus.PAID, InvoiceStatus.CANCELLED}),
    InvoiceStatus.PAID: frozenset({InvoiceStatus.CANCELLED}),
    InvoiceStatus.CANCELLED: frozenset(),
}

# Invoices in these states keep their content frozen and cannot be sent
LOCKED_STATUSES = frozenset({InvoiceStatus.PAID, InvoiceStatus.CANCELLED})


def can_transition(current: InvoiceStatus, target: InvoiceStatus) -> bool:
    if current == target:
        return True
    return target in ALLOWED_TRANSITIONS[current]


def can_send(status: InvoiceStatus) -> bool:
    return status not in LOCKED_STATUSES
