"""Quluub Payments - Session API endpoints."""

from typing import Annotated

from fastapi import APIRouter, Depends

from src.api.deps import CurrentUser, app_error_to_http, get_session_service
from src.core.exceptions import AppError
from src.schemas.pagination import CustomPage
from src.schemas.session import RescheduleRequest, SessionResponse
from src.services.session_service import SessionService

router = APIRouter(prefix="/sessions", tags=["Sessions"])

SessionServiceDep = Annotated[SessionService, Depends(get_session_service)]


@router.get("", response_model=CustomPage[SessionResponse])
async def list_sessions(user: CurrentUser, service: SessionServiceDep):
    """List sessions where the current user is client or counselor."""
    return await service.list_sessions(user)


@router.get("/{session_id}", response_model=SessionResponse)
async def get_session(session_id: int, user: CurrentUser, service: SessionServiceDep):
    try:
        return await service.get_session_for(session_id, user)
    except AppError as e:
        raise app_error_to_http(e) from e


@router.put("/{session_id}/complete", response_model=SessionResponse)
async def complete_session(session_id: int, user: CurrentUser, service: SessionServiceDep):
    """Mark a paid session as completed."""
    try:
        return await service.complete_session(session_id, user)
    except AppError as e:
        raise app_error_to_http(e) from e


@router.put("/{session_id}/cancel", response_model=SessionResponse)
async def cancel_session(session_id: int, user: CurrentUser, service: SessionServiceDep):
    """Cancel a pending or paid session."""
    try:
        return await service.cancel_session(session_id, user)
    except AppError as e:
        raise app_error_to_http(e) from e


@router.put("/{session_id}/reschedule", response_model=SessionResponse)
async def reschedule_session(
    session_id: int,
    data: RescheduleRequest,
    user: CurrentUser,
    service: SessionServiceDep,
):
    try:
        return await service.reschedule_session(session_id, user, data.date)
    except AppError as e:
        raise app_error_to_http(e) from e
