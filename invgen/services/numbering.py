"""Invoice number allocation.

Numbers look like ``INV-00042``: a fixed prefix and a zero-padded per-user
counter. The counter lives in its own row and is bumped under a row lock, so
concurrent creations for one user never read the same "latest" number.
"""
from typing import Iterable, Optional
from uuid import UUID
import logging
import re

from invgen.repositories.base import DataStore

logger = logging.getLogger(__name__)

INVOICE_NUMBER_PREFIX = "INV-"
INVOICE_NUMBER_WIDTH = 5
_INVOICE_NUMBER_RE = re.compile(rf"^{re.escape(INVOICE_NUMBER_PREFIX)}(\d+)$")


def format_invoice_number(value: int) -> str:
    return f"{INVOICE_NUMBER_PREFIX}{value:0{INVOICE_NUMBER_WIDTH}d}"


def parse_invoice_number(invoice_number: Optional[str]) -> Optional[int]:
    """Numeric suffix of ``invoice_number``, or ``None`` if it is malformed."""
    match = _INVOICE_NUMBER_RE.match(invoice_number or "")
    if not match:
        return None
    return int(match.group(1))


def next_sequence_value(invoice_numbers: Iterable[str]) -> int:
    """Counter value following the highest well-formed number (1 when there is none)."""
    highest = 0
    for invoice_number in invoice_numbers:
        value = parse_invoice_number(invoice_number)
        if value is None:
            logger.warning(f"Ignoring malformed invoice number {invoice_number!r}")
            continue
        highest = max(highest, value)
    return highest + 1


def next_invoice_number_from(invoice_numbers: Iterable[str]) -> str:
    return format_invoice_number(next_sequence_value(invoice_numbers))


class InvoiceNumberAllocator:
    def __init__(self, store: DataStore):
        self.store = store

    async def next_invoice_number(self, user_id: UUID) -> str:
        """Allocate the next number for ``user_id`` inside the caller's transaction.

        The first allocation seeds the counter from the user's existing
        invoices. A concurrent seed surfaces as ``DuplicateRecordError``.
        """
        value = await self.store.increment_invoice_sequence(user_id)
        if value is None:
            invoices = await self.store.get_invoices_by_user(user_id)
            value = next_sequence_value(invoice.invoice_number for invoice in invoices)
            await self.store.start_invoice_sequence(user_id, value)
        return format_invoice_number(value)
