"""Sequence endpoints for collaborators issuing invoice and patient numbers."""

from typing import Annotated

from fastapi import APIRouter, Path, status

from carequeue.dependencies import CurrentCaller, DatabaseSession
from carequeue.schemas.sequences import SequenceRequest, SequenceResponse
from carequeue.services.sequence_service import SequenceService

router = APIRouter()


@router.post(
    "/{name}/next",
    response_model=SequenceResponse,
    status_code=status.HTTP_200_OK,
    summary="Issue next sequence number",
)
async def next_sequence_value(
    name: Annotated[str, Path(min_length=1, max_length=60, pattern=r"^[a-z][a-z0-9_-]*$")],
    data: SequenceRequest,
    caller: CurrentCaller,
    db: DatabaseSession,
) -> SequenceResponse:
    """
    Issue the next value of a named per-hospital sequence.

    Args:
        name: Sequence name, e.g. ``invoice``
        data: Prefix, period and zero-pad width for formatting
        caller: Authenticated caller
        db: Database session

    Returns:
        The integer and its formatted form, e.g. ``INV-2506-0001``
    """
    service = SequenceService(db)
    return await service.issue(
        caller.hospital_id,
        name,
        prefix=data.prefix,
        period=data.period,
        width=data.width,
    )
