from typing import Optional

from fastapi import APIRouter, Depends

from ..auth.security import require_path
from ..schemas.billing import InvoiceCreate, Status, TransitionRequest
from ..services import notifications as notification_service
from ..services.aggregations import check_invoice, invoice_board
from ..services.audit import get_audit_logs
from ..services.invoices import register_invoice
from ..services.mirror import load_state
from ..services.workflow import INVOICE_BINDING, transition
from ..services.access import Identity
from ..store.provider import DocumentStore
from ..store.registry import get_store


router = APIRouter(prefix="/invoices", tags=["invoices"])


@router.get("")
def list_invoices(
    status: Optional[Status] = None,
    project_id: Optional[str] = None,
    store: DocumentStore = Depends(get_store),
    _: Identity = Depends(require_path("/financials")),
):
    """Invoices grouped by project, each checked against the approved hours."""
    state = load_state(store)
    invoices = [
        i for i in state.invoices
        if (status is None or i.status is status) and (not project_id or i.project_id == project_id)
    ]
    return invoice_board(state, invoices)


@router.post("", status_code=201)
def create_invoice(payload: InvoiceCreate, store: DocumentStore = Depends(get_store), _: Identity = Depends(require_path("/financials"))):
    invoice = register_invoice(store, payload)
    state = load_state(store)
    project = state.project(invoice.project_id)
    notification_service.invoice_registered(store, project.name if project else invoice.project_id, invoice.period, invoice.id)
    return {
        **invoice.model_dump(mode="json"),
        **check_invoice(invoice, state.subcontractors, state.time_logs).to_dict(),
    }


@router.post("/{invoice_id}/transition")
def transition_invoice(
    invoice_id: str,
    req: TransitionRequest,
    store: DocumentStore = Depends(get_store),
    me: Identity = Depends(require_path("/financials")),
):
    return transition(store, INVOICE_BINDING, invoice_id, me, req.status, req.feedback).model_dump(mode="json")


@router.get("/{invoice_id}/audit")
def invoice_audit(invoice_id: str, store: DocumentStore = Depends(get_store), _: Identity = Depends(require_path("/financials"))):
    return get_audit_logs(store, entity_type=INVOICE_BINDING.entity_type, entity_id=invoice_id)
