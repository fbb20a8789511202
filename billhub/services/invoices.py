from typing import Optional

import structlog

from ..config import settings
from ..constants import INVOICES, PROJECTS, SUBCONTRACTORS
from ..errors import NotFoundError, ValidationError
from ..schemas.billing import Invoice, InvoiceCreate, Status
from ..store.provider import DocumentStore, new_document_id

logger = structlog.get_logger(__name__)


def validate_invoice(payload: InvoiceCreate) -> None:
    missing = [
        name for name, value in (
            ("project_id", payload.project_id),
            ("subcontractor_id", payload.subcontractor_id),
            ("amount", payload.amount),
        )
        if not value
    ]
    if missing:
        raise ValidationError(f"missing required fields: {', '.join(missing)}")
    if payload.amount < 0:
        raise ValidationError("amount must be positive")


def register_invoice(store: DocumentStore, payload: InvoiceCreate, invoice_id: Optional[str] = None) -> Invoice:
    """Register a PENDING invoice; nothing is written unless every check passes."""
    validate_invoice(payload)
    if store.get(PROJECTS, payload.project_id) is None:
        raise NotFoundError(PROJECTS, payload.project_id)
    if store.get(SUBCONTRACTORS, payload.subcontractor_id) is None:
        raise NotFoundError(SUBCONTRACTORS, payload.subcontractor_id)
    invoice = Invoice(
        id=invoice_id or new_document_id(),
        project_id=payload.project_id,
        subcontractor_id=payload.subcontractor_id,
        period=payload.period,
        amount=float(payload.amount),
        currency=payload.currency or settings.default_currency,
        status=Status.PENDING,
        file_url=payload.file_url,
    )
    store.create(INVOICES, invoice.model_dump(mode="json", exclude_none=True))
    logger.info("invoice_registered", invoice_id=invoice.id, project_id=invoice.project_id, amount=invoice.amount)
    return invoice
