"""
FastAPI routes for incident management.
"""

from datetime import datetime
from functools import lru_cache
from typing import Optional, List, Union

from fastapi import APIRouter, Depends, Request, status
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from pydantic import BaseModel, ConfigDict, Field
from sqlalchemy.orm import Session

from anchor_incidents.config.app_config import get_event_config
from anchor_incidents.database import get_db
from anchor_incidents.models.incident import Incident, IncidentSeverity, IncidentStatus, NoteType
from anchor_incidents.services.errors import (
    IncidentError,
    IncidentNotFoundError,
    InvalidInputError,
    InvalidTransitionError,
    PartialFailureError,
)
from anchor_incidents.services.event_publisher import (
    EventPublisher,
    EventFailurePolicy,
    build_event_publisher,
    parse_failure_policy,
)
from anchor_incidents.services.incident_repository import IncidentRepository
from anchor_incidents.services.incident_service import IncidentService
from anchor_incidents.utils.logging import get_logger

logger = get_logger(__name__)
router = APIRouter(prefix="/incidents", tags=["incidents"])


# Request/Response models
class NoteRequest(BaseModel):
    """Note supplied with a create request."""
    content: str = Field(..., description="Note content")
    author_email: Optional[str] = Field(None, description="Author email")
    type: Optional[str] = Field(None, description="update, investigation, resolution or communication")


class CreateIncidentRequest(BaseModel):
    """Request model for incident creation."""
    title: str = Field(..., description="Incident title", min_length=1)
    severity: str = Field(..., description="Incident severity (low, medium, high, critical)", min_length=1)
    description: Optional[str] = Field(None, description="Incident description")
    notes: Optional[List[NoteRequest]] = Field(None, description="Initial notes")
    author_email: Optional[str] = Field(None, description="Creator email, added to the watch list")
    assignee: Optional[str] = Field(None, description="Assignee")


class UpdateStatusRequest(BaseModel):
    status: str = Field(..., description="Target status", min_length=1)
    author_email: Optional[str] = Field(None, description="Email added to the watch list")


class UpdateSeverityRequest(BaseModel):
    severity: str = Field(..., description="Target severity", min_length=1)
    author_email: Optional[str] = Field(None, description="Email added to the watch list")


class AddNoteRequest(BaseModel):
    content: str = Field(..., description="Note content", min_length=1)
    author_email: Optional[str] = Field(None, description="Author email")
    type: Optional[str] = Field(None, description="Note type")


class AddWatcherRequest(BaseModel):
    email: str = Field(..., description="Watcher email")


class NoteResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    content: str
    author_email: str
    type: NoteType
    created_at: datetime


class WatcherResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    email: str


class IncidentResponse(BaseModel):
    """Serialized incident."""
    model_config = ConfigDict(from_attributes=True)

    id: str
    incident_key: int
    title: str
    severity: IncidentSeverity
    status: IncidentStatus
    created_at: datetime
    updated_at: datetime
    notes: List[NoteResponse]
    watchlist: List[WatcherResponse]
    created_by: str
    description: str
    assignee: str


class IncidentEnvelope(BaseModel):
    success: bool = True
    data: IncidentResponse


class IncidentListEnvelope(BaseModel):
    success: bool = True
    data: List[IncidentResponse]


def serialize_incident(incident: Incident) -> IncidentResponse:
    return IncidentResponse.model_validate(incident)


# Dependency injection
@lru_cache(maxsize=1)
def get_event_publisher() -> EventPublisher:
    """Process-wide publisher built from configuration."""
    return build_event_publisher(get_event_config())


def get_event_failure_policy() -> EventFailurePolicy:
    return parse_failure_policy(get_event_config()["failure_policy"])


def get_incident_service(
    db: Session = Depends(get_db),
    publisher: EventPublisher = Depends(get_event_publisher),
    failure_policy: EventFailurePolicy = Depends(get_event_failure_policy)
) -> IncidentService:
    return IncidentService(IncidentRepository(db), publisher, failure_policy)


# Error mapping
def _error_status(error: IncidentError) -> int:
    if isinstance(error, IncidentNotFoundError):
        return status.HTTP_404_NOT_FOUND
    if isinstance(error, (InvalidInputError, InvalidTransitionError, PartialFailureError)):
        return status.HTTP_400_BAD_REQUEST
    # PersistenceError and anything unexpected
    return status.HTTP_500_INTERNAL_SERVER_ERROR


def _error_message(error: IncidentError) -> str:
    if isinstance(error, IncidentNotFoundError):
        return "Incident not found"
    if isinstance(error, PartialFailureError):
        return "Incident updated but watcher was not added"
    if isinstance(error, InvalidTransitionError):
        return "Invalid status transition"
    if isinstance(error, InvalidInputError):
        return "Invalid request"
    return "Incident store failure"


async def incident_error_handler(request: Request, exc: IncidentError) -> JSONResponse:
    """Map lifecycle errors to HTTP responses."""
    status_code = _error_status(exc)
    log = logger.error if status_code >= 500 else logger.warning
    log("incident_request_failed", path=request.url.path, status_code=status_code, error=str(exc))
    return JSONResponse(
        status_code=status_code,
        content={"error": _error_message(exc), "details": str(exc)},
    )


def partial_failure_response(exc: PartialFailureError) -> JSONResponse:
    """
    400 response that still carries the incident as persisted.

    Built inside the route while the session is open, since the incident
    is reloaded from the store here.
    """
    logger.warning("incident_request_partially_applied", incident_id=exc.incident.id, error=str(exc))
    return JSONResponse(
        status_code=status.HTTP_400_BAD_REQUEST,
        content={
            "error": _error_message(exc),
            "details": str(exc),
            "data": jsonable_encoder(serialize_incident(exc.incident)),
        },
    )


async def request_validation_error_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    logger.warning("incident_request_invalid", path=request.url.path)
    return JSONResponse(
        status_code=status.HTTP_400_BAD_REQUEST,
        content={"error": "Invalid request body", "details": jsonable_encoder(exc.errors())},
    )


@router.get("", response_model=IncidentListEnvelope)
@router.get("/", response_model=IncidentListEnvelope, include_in_schema=False)
def list_incidents(service: IncidentService = Depends(get_incident_service)) -> IncidentListEnvelope:
    """
    List incidents, newest first.
    """
    incidents = service.list_incidents()
    return IncidentListEnvelope(data=[serialize_incident(incident) for incident in incidents])


@router.post("", response_model=IncidentEnvelope, status_code=status.HTTP_201_CREATED)
@router.post("/", response_model=IncidentEnvelope, status_code=status.HTTP_201_CREATED, include_in_schema=False)
def create_incident(
    request: CreateIncidentRequest,
    service: IncidentService = Depends(get_incident_service)
) -> IncidentEnvelope:
    """
    Create an incident. Status always starts at `open`.
    """
    logger.info("create_incident_requested", title=request.title, severity=request.severity)
    incident = service.create_incident(
        title=request.title,
        severity=request.severity,
        description=request.description,
        notes=[note.model_dump() for note in request.notes] if request.notes else None,
        author_email=request.author_email,
        assignee=request.assignee,
    )
    return IncidentEnvelope(data=serialize_incident(incident))


@router.get("/{incident_id}", response_model=IncidentEnvelope)
def get_incident(incident_id: str, service: IncidentService = Depends(get_incident_service)) -> IncidentEnvelope:
    """
    Fetch one incident by storage id or incident key.
    """
    return IncidentEnvelope(data=serialize_incident(service.get_by_id(incident_id)))


@router.put("/{incident_id}/status", response_model=IncidentEnvelope)
def update_incident_status(
    incident_id: str,
    request: UpdateStatusRequest,
    service: IncidentService = Depends(get_incident_service)
) -> Union[IncidentEnvelope, JSONResponse]:
    logger.info("update_incident_status_requested", incident_id=incident_id, status=request.status)
    try:
        incident = service.update_status(incident_id, request.status, request.author_email)
    except PartialFailureError as e:
        return partial_failure_response(e)
    return IncidentEnvelope(data=serialize_incident(incident))


@router.put("/{incident_id}/severity", response_model=IncidentEnvelope)
def update_incident_severity(
    incident_id: str,
    request: UpdateSeverityRequest,
    service: IncidentService = Depends(get_incident_service)
) -> Union[IncidentEnvelope, JSONResponse]:
    logger.info("update_incident_severity_requested", incident_id=incident_id, severity=request.severity)
    try:
        incident = service.update_severity(incident_id, request.severity, request.author_email)
    except PartialFailureError as e:
        return partial_failure_response(e)
    return IncidentEnvelope(data=serialize_incident(incident))


@router.post("/{incident_id}/notes", response_model=IncidentEnvelope, status_code=status.HTTP_201_CREATED)
def add_note_to_incident(
    incident_id: str,
    request: AddNoteRequest,
    service: IncidentService = Depends(get_incident_service)
) -> IncidentEnvelope:
    logger.info("add_note_requested", incident_id=incident_id, author=request.author_email)
    incident = service.add_note(incident_id, request.content, request.author_email, request.type)
    return IncidentEnvelope(data=serialize_incident(incident))


@router.post("/{incident_id}/watchlist", response_model=IncidentEnvelope, status_code=status.HTTP_201_CREATED)
def add_watcher_to_incident(
    incident_id: str,
    request: AddWatcherRequest,
    service: IncidentService = Depends(get_incident_service)
) -> IncidentEnvelope:
    logger.info("add_watcher_requested", incident_id=incident_id, email=request.email)
    incident = service.add_watcher(incident_id, request.email)
    return IncidentEnvelope(data=serialize_incident(incident))
