"""API router exposing chat sessions to rendering surfaces."""
from __future__ import annotations

import logging
from typing import Dict, Optional

from fastapi import APIRouter, Depends, File, Form, HTTPException, UploadFile
from pydantic import BaseModel, Field

from intipal.answering import AnswerService
from intipal.config import Settings
from intipal.ingest import FileDescriptor, UploadOutcome
from intipal.session import SessionController, SessionState

LOGGER = logging.getLogger(__name__)

router = APIRouter(prefix="/sessions", tags=["sessions"])


class MessagePayload(BaseModel):
    text: str
    origin: str
    sequence: int


class UploadPayload(BaseModel):
    file_name: str
    declared_type: str
    byte_length: Optional[int]
    state: str
    progress_percent: int


class DocumentPayload(BaseModel):
    page_count: int
    characters: int


class SessionStateResponse(BaseModel):
    """Everything a surface needs to render one session."""

    session_id: str
    messages: list[MessagePayload]
    draft_input: str
    send_in_flight: bool
    upload: UploadPayload
    document: Optional[DocumentPayload]
    can_send: bool
    upload_enabled: bool
    input_enabled: bool


class UploadResponse(SessionStateResponse):
    status: str


class DraftRequest(BaseModel):
    text: str = Field("", description="Current contents of the message input.")


class SessionRegistry:
    """In-process collection of live sessions keyed by id."""

    def __init__(
        self,
        settings: Optional[Settings] = None,
        answer_service: Optional[AnswerService] = None,
    ) -> None:
        self.settings = settings or Settings.from_env()
        self.answer_service = answer_service
        self._sessions: Dict[str, SessionController] = {}

    def create(self) -> SessionController:
        controller = SessionController.from_settings(self.settings, answer_service=self.answer_service)
        self._sessions[controller.session_id] = controller
        LOGGER.info("Created session %s", controller.session_id)
        return controller

    def get(self, session_id: str) -> SessionController:
        try:
            return self._sessions[session_id]
        except KeyError:
            raise HTTPException(status_code=404, detail=f"Unknown session {session_id}") from None

    def discard(self, session_id: str) -> None:
        controller = self.get(session_id)
        controller.reset()
        del self._sessions[session_id]
        LOGGER.info("Discarded session %s", session_id)

    def __len__(self) -> int:
        return len(self._sessions)


_registry: Optional[SessionRegistry] = None


def get_session_registry() -> SessionRegistry:
    """FastAPI dependency returning the shared :class:`SessionRegistry`."""

    global _registry
    if _registry is None:
        _registry = SessionRegistry()
    return _registry


def _serialise_state(state: SessionState) -> dict:
    document = None
    if state.document is not None:
        document = DocumentPayload(
            page_count=state.document.page_count,
            characters=len(state.document.aggregate),
        )
    return {
        "session_id": state.session_id,
        "messages": [
            MessagePayload(text=message.text, origin=message.origin.value, sequence=message.sequence)
            for message in state.messages
        ],
        "draft_input": state.draft_input,
        "send_in_flight": state.send_in_flight,
        "upload": UploadPayload(
            file_name=state.upload.file_name,
            declared_type=state.upload.declared_type,
            byte_length=state.upload.byte_length,
            state=state.upload.state.value,
            progress_percent=state.upload.progress_percent,
        ),
        "document": document,
        "can_send": state.can_send,
        "upload_enabled": state.upload_enabled,
        "input_enabled": state.input_enabled,
    }


def _state_response(controller: SessionController) -> SessionStateResponse:
    return SessionStateResponse(**_serialise_state(controller.state()))


@router.post("", response_model=SessionStateResponse, status_code=201)
async def create_session(
    registry: SessionRegistry = Depends(get_session_registry),
) -> SessionStateResponse:
    """Start a new, empty chat session."""

    return _state_response(registry.create())


@router.get("/{session_id}", response_model=SessionStateResponse)
async def read_session(
    session_id: str,
    registry: SessionRegistry = Depends(get_session_registry),
) -> SessionStateResponse:
    return _state_response(registry.get(session_id))


@router.put("/{session_id}/draft", response_model=SessionStateResponse)
async def update_draft(
    session_id: str,
    request: DraftRequest,
    registry: SessionRegistry = Depends(get_session_registry),
) -> SessionStateResponse:
    controller = registry.get(session_id)
    controller.set_draft(request.text)
    return _state_response(controller)


@router.post("/{session_id}/upload", response_model=UploadResponse)
async def upload_document(
    session_id: str,
    file: UploadFile = File(...),
    replace: bool = Form(False),
    registry: SessionRegistry = Depends(get_session_registry),
) -> UploadResponse:
    """Ingest one PDF; failures are reported in the message log, not as errors.

    With ``replace`` set, an upload already in progress is superseded.
    """

    controller = registry.get(session_id)
    descriptor = FileDescriptor(
        name=file.filename or "upload",
        type=file.content_type or "",
        stream=file,
        size=getattr(file, "size", None),
    )
    outcome: UploadOutcome = await controller.upload_file(descriptor, replace=replace)
    return UploadResponse(status=outcome.status.value, **_serialise_state(controller.state()))


@router.post("/{session_id}/send", response_model=SessionStateResponse)
async def send_message(
    session_id: str,
    registry: SessionRegistry = Depends(get_session_registry),
) -> SessionStateResponse:
    """Send the current draft and wait for the reply."""

    controller = registry.get(session_id)
    if not controller.can_send:
        raise HTTPException(status_code=409, detail="Sending is not available for this session")
    await controller.send_message()
    return _state_response(controller)


@router.delete("/{session_id}", status_code=204)
async def delete_session(
    session_id: str,
    registry: SessionRegistry = Depends(get_session_registry),
) -> None:
    registry.discard(session_id)
