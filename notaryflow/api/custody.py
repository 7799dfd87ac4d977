from uuid import UUID

from fastapi import APIRouter, Depends, Query, status

from notaryflow.api.deps import get_current_actor, get_workflow
from notaryflow.models.custody import CustodyRequestStatus
from notaryflow.models.person import Person
from notaryflow.schemas.custody import (
    CustodyLedgerEntryRead,
    CustodyRequestCreate,
    CustodyRequestDetail,
    CustodyRequestPage,
    CustodyRequestRead,
    CustodyRequestTransition,
    DocumentCustodyRead,
)
from notaryflow.services import custody_policy
from notaryflow.services.custody_workflow import CustodyWorkflow

router = APIRouter(tags=["custody"])


@router.post(
    "/documents/{document_id}/custody-requests",
    response_model=CustodyRequestRead,
    status_code=status.HTTP_201_CREATED,
)
def request_custody(
    document_id: str,
    payload: CustodyRequestCreate,
    actor: Person = Depends(get_current_actor),
    workflow: CustodyWorkflow = Depends(get_workflow),
):
    requester_id = payload.requester_id or actor.id
    custody_policy.ensure_can_request(actor, requester_id, workflow.directory)
    return workflow.request_custody(
        document_id,
        requester_id,
        actor.id,
        expected_return_date=payload.expected_return_date,
    )


@router.post(
    "/custody-requests/{request_id}/transitions",
    response_model=CustodyRequestRead,
)
def transition_request(
    request_id: str,
    payload: CustodyRequestTransition,
    actor: Person = Depends(get_current_actor),
    workflow: CustodyWorkflow = Depends(get_workflow),
):
    # requester_id never changes, so checking it before the locked
    # transaction is safe
    existing = workflow.get_request(request_id)
    custody_policy.ensure_can_transition(
        actor, existing, payload.status, workflow.directory
    )
    return workflow.transition_request(
        request_id,
        payload.status,
        actor.id,
        location=payload.location,
        notes=payload.notes,
    )


@router.get("/custody-requests", response_model=CustodyRequestPage)
def list_custody_requests(
    status_filter: list[CustodyRequestStatus] | None = Query(
        default=None, alias="status"
    ),
    requester_id: UUID | None = None,
    document_id: UUID | None = None,
    page: int = Query(default=1, ge=1),
    limit: int = Query(default=20, ge=1, le=100),
    actor: Person = Depends(get_current_actor),
    workflow: CustodyWorkflow = Depends(get_workflow),
):
    return workflow.list_requests(
        statuses=status_filter,
        requester_id=custody_policy.visible_requester(
            actor, requester_id, workflow.directory
        ),
        document_id=document_id,
        page=page,
        limit=limit,
    )


@router.get("/custody-requests/{request_id}", response_model=CustodyRequestDetail)
def get_custody_request(
    request_id: str,
    actor: Person = Depends(get_current_actor),
    workflow: CustodyWorkflow = Depends(get_workflow),
):
    request = workflow.get_request(request_id)
    custody_policy.visible_requester(actor, request.requester_id, workflow.directory)
    return request


@router.get("/documents/{document_id}/custody", response_model=DocumentCustodyRead)
def get_document_custody(
    document_id: str,
    actor: Person = Depends(get_current_actor),
    workflow: CustodyWorkflow = Depends(get_workflow),
):
    return workflow.get_current_custody(document_id)


@router.get(
    "/documents/{document_id}/location-history",
    response_model=list[CustodyLedgerEntryRead],
)
def get_location_history(
    document_id: str,
    actor: Person = Depends(get_current_actor),
    workflow: CustodyWorkflow = Depends(get_workflow),
):
    return workflow.get_location_history(document_id)
