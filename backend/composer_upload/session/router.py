"""Upload session router providing HTTP and WebSocket endpoints.

This module provides:
    - POST /uploads/{session_id}/files: Add files (multipart)
    - DELETE /uploads/{session_id}/files/{file_id}: Cancel one upload
    - DELETE /uploads/{session_id}/files: Cancel every upload
    - GET /uploads/{session_id}: Status and document text
    - WebSocket /ws/uploads/{session_id}: Notification stream

The WebSocket protocol:
    - On connect the server sends {type: "status", ...} with the session status
    - Every host notification arrives as {type: "notification", kind, ...}
    - Error alerts arrive as {type: "alert", message}
    - Clients may send {type: "cancel", file_id?} to cancel uploads
"""
import logging
from typing import List, Optional

from fastapi import APIRouter, File, Form, HTTPException, UploadFile, WebSocket, WebSocketDisconnect

from ..config import get_config
from ..events import HostCommand
from ..files import RawFile
from ..transport import HttpTransport
from .registry import BroadcastPresenter, SessionRegistry
from .schemas import AddFilesResponse, SessionView

logger = logging.getLogger(__name__)

router = APIRouter(tags=["uploads"])

_registry: Optional[SessionRegistry] = None


def _http_transport_factory():
    config = get_config()
    return HttpTransport(
        config.transport.endpoint,
        base_url=config.transport.base_url,
        client_id=config.transport.client_id,
        debug_timings=config.uploads.debug_upload_timings,
    )


def get_registry() -> SessionRegistry:
    """Return the process-wide registry, creating an HTTP-backed one on first use."""
    global _registry
    if _registry is None:
        _registry = SessionRegistry(_http_transport_factory)
    return _registry


def set_registry(registry: Optional[SessionRegistry]) -> None:
    """Replace the process-wide registry (for testing)."""
    global _registry
    _registry = registry


def _session_view(registry: SessionRegistry, session_id: str) -> SessionView:
    session = registry.get(session_id)
    if session is None:
        raise HTTPException(status_code=404, detail=f"Upload session {session_id} not found")
    host = registry.get_host(session_id)
    alerts = session.presenter.alerts if isinstance(session.presenter, BroadcastPresenter) else []
    return SessionView(
        session_id=session_id,
        status=session.status,
        text=host.buffer.text if host else "",
        alerts=list(alerts),
    )


@router.post("/uploads/{session_id}/files", response_model=AddFilesResponse)
async def add_files(
    session_id: str,
    files: List[UploadFile] = File(...),
    pasted: bool = Form(False),
):
    """Add a batch of files to a session (created on first use).

    Returns:
        AddFilesResponse; accepted is False when validation, a handler or the
        simultaneous-upload limit aborted the batch.
    """
    registry = get_registry()
    session = registry.get_or_create(session_id)

    raw_files = [
        RawFile(
            name=upload.filename or "",
            content_type=upload.content_type or "application/octet-stream",
            data=await upload.read(),
        )
        for upload in files
    ]
    logger.info(f"[HTTP] {len(raw_files)} file(s) added to upload session {session_id}")

    accepted = await session.add_files(raw_files, pasted=pasted)
    return AddFilesResponse(session_id=session_id, accepted=accepted, status=session.status)


@router.delete("/uploads/{session_id}/files/{file_id}")
async def cancel_upload(session_id: str, file_id: str):
    """Cancel a single upload.

    Raises:
        HTTPException 404: Unknown session or file
        HTTPException 409: Uploads are still preprocessing
    """
    session = get_registry().get(session_id)
    if session is None:
        raise HTTPException(status_code=404, detail=f"Upload session {session_id} not found")
    if session.is_processing_upload:
        raise HTTPException(status_code=409, detail="Uploads cannot be cancelled while preprocessing")
    if session.get_record(file_id) is None or not session.cancel(file_id):
        raise HTTPException(status_code=404, detail=f"Upload {file_id} not in progress")
    return {"cancelled": True, "file_id": file_id}


@router.delete("/uploads/{session_id}/files")
async def cancel_all_uploads(session_id: str):
    """Cancel every upload in a session."""
    session = get_registry().get(session_id)
    if session is None:
        raise HTTPException(status_code=404, detail=f"Upload session {session_id} not found")
    if session.is_processing_upload:
        raise HTTPException(status_code=409, detail="Uploads cannot be cancelled while preprocessing")
    return {"cancelled": session.cancel()}


@router.get("/uploads/{session_id}", response_model=SessionView)
async def get_session(session_id: str):
    return _session_view(get_registry(), session_id)


@router.websocket("/ws/uploads/{session_id}")
async def upload_notifications(websocket: WebSocket, session_id: str):
    """Stream a session's notifications; accepts cancel commands."""
    registry = get_registry()
    registry.get_or_create(session_id)
    await registry.connect(websocket, session_id)

    try:
        view = _session_view(registry, session_id)
        await websocket.send_json({"type": "status", **view.model_dump(mode="json")})

        while True:
            data = await websocket.receive_json()
            if data.get("type") == "cancel":
                host = registry.get_host(session_id)
                if host is not None:
                    host.commands.emit(HostCommand.CANCEL_UPLOAD, data.get("file_id"))
            else:
                await websocket.send_json({
                    "type": "error",
                    "message": f"Unknown message type: {data.get('type')}"
                })

    except WebSocketDisconnect:
        registry.disconnect(websocket, session_id)
        logger.info(f"[WS] Listener left upload session {session_id}")
