# src/api/routes.py
import logging
from typing import Optional

from fastapi import APIRouter, Body, Depends, File, Form, Request, UploadFile
from fastapi.responses import JSONResponse, Response

from src.api.schemas import SensorRequest
from src.application.container import ServiceContainer
from src.domain.exceptions import InvalidImage, InvalidSensorState

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api", tags=["gate"])


def get_container(request: Request) -> ServiceContainer:
    return request.app.state.container


def _stream_id(request: Request, form_value: Optional[str], default: str) -> str:
    # form o query, como lo envía la app móvil
    value = form_value or request.query_params.get("stream_id")
    return (value or "").strip() or default


# ---------------------------------------------------------
#  /api/detect (móvil -> OCR)
# ---------------------------------------------------------
@router.post("/detect")
async def detect(
    request: Request,
    frame: Optional[UploadFile] = File(None),
    stream_id: Optional[str] = Form(None),
    container: ServiceContainer = Depends(get_container),
):
    if frame is None:
        raise InvalidImage("frame is required")

    data = await frame.read()
    sid = _stream_id(request, stream_id, container.frames.default_stream_id)
    response = await container.orchestrator.handle_detection_request(sid, data, frame.content_type)
    return response.to_dict()


# ---------------------------------------------------------
#  /api/sensor (sensor de presencia)
# ---------------------------------------------------------
@router.post("/sensor")
async def sensor(
    payload: Optional[SensorRequest] = Body(None),
    container: ServiceContainer = Depends(get_container),
):
    if payload is None:
        raise InvalidSensorState()
    state = await container.gate.report_sensor(payload.is_present())
    return state.to_sensor_echo()


@router.get("/gate-state")
async def gate_state(container: ServiceContainer = Depends(get_container)):
    return container.gate.to_payload()


# ---------------------------------------------------------
#  Relay de video (móvil -> dashboard)
# ---------------------------------------------------------
@router.post("/stream-frame")
async def stream_frame(
    request: Request,
    frame: Optional[UploadFile] = File(None),
    stream_id: Optional[str] = Form(None),
    container: ServiceContainer = Depends(get_container),
):
    if frame is None:
        raise InvalidImage("frame is required")

    data = await frame.read()
    sid = _stream_id(request, stream_id, container.frames.default_stream_id)
    await container.frames.store_frame(sid, data, frame.content_type)
    return JSONResponse({"success": True})


@router.get("/latest-frame")
async def latest_frame(
    stream_id: Optional[str] = None,
    container: ServiceContainer = Depends(get_container),
):
    frame = container.frames.get_latest_frame(stream_id)
    return Response(
        content=frame.image_bytes,
        media_type=frame.content_type,
        headers={"Cache-Control": "no-store"},
    )
