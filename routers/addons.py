from __future__ import annotations

import logging
from typing import Any, Dict

from fastapi import APIRouter, Body, FastAPI, HTTPException, Request
from fastapi.concurrency import run_in_threadpool
from fastapi.responses import JSONResponse

from core.config import get_settings
from core.device_api import ContractError, DeviceClient, DeviceClientError, HTTPError, NetworkError
from core.models import SaveResponse, SessionView, ValidationReport
from core.sequencer import LoopTickScheduler, ToneSequencer
from core.session import EditingSession, SaveBlocked
from core.synthesizer import RecordingOscillator
from core.validation import FIELD_LABELS, coerce_field, validate_config

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/v1/addons", tags=["Addons"])


# -------------------------------------------------------------------
# Session plumbing (one editing session per app)
# -------------------------------------------------------------------
def get_device_client(app: FastAPI) -> DeviceClient:
    client = getattr(app.state, "device_client", None)
    if client is None:
        s = get_settings()
        client = DeviceClient(base_url=s.device_base_url, timeout_s=s.device_timeout_s)
        app.state.device_client = client
    return client


def _device_error(e: DeviceClientError) -> HTTPException:
    if isinstance(e, NetworkError):
        detail = f"Device unreachable: {e}"
    elif isinstance(e, HTTPError):
        detail = f"Device returned HTTP {e.status_code}"
    elif isinstance(e, ContractError):
        detail = f"Unexpected device response: {e}"
    else:
        detail = str(e)
    return HTTPException(status_code=502, detail=detail)


async def load_session(app: FastAPI) -> EditingSession:
    """Start a new editing session; the previous one (and its playback) is dropped."""
    client = get_device_client(app)
    try:
        options = await run_in_threadpool(client.get_addons_options)
    except DeviceClientError as e:
        logger.warning("Loading add-ons options failed: %s", e)
        raise _device_error(e)

    old = getattr(app.state, "session", None)
    if old is not None:
        old.stop()

    s = get_settings()
    sequencer = ToneSequencer(RecordingOscillator(), LoopTickScheduler(), min_tick_ms=s.min_tick_ms)
    session = EditingSession(options, sequencer=sequencer, save=client.set_addons_options)
    app.state.session = session
    return session


async def get_session(request: Request) -> EditingSession:
    session = getattr(request.app.state, "session", None)
    if session is None:
        session = await load_session(request.app)
    return session


# -------------------------------------------------------------------
# Routes
# -------------------------------------------------------------------
@router.get("", response_model=SessionView)
async def get_addons(request: Request) -> SessionView:
    session = await get_session(request)
    return session.view()


@router.patch("", response_model=SessionView)
async def edit_addons(request: Request, changes: Dict[str, Any] = Body(...)) -> SessionView:
    """Apply field edits; every field is revalidated and reports its own error."""
    session = await get_session(request)
    try:
        session.set_fields(changes)
    except KeyError as e:
        raise HTTPException(status_code=422, detail=str(e.args[0]) if e.args else "Unknown field")
    return session.view()


@router.post("/validate", response_model=ValidationReport)
async def validate_addons(request: Request, values: Dict[str, Any] = Body(...)) -> ValidationReport:
    """
    Stateless validation of a (partial) record.

    Uses the open session's used-pin snapshot and catalogue size when there is
    one; nothing is loaded from the device for this call.
    """
    unknown = [k for k in values if k not in FIELD_LABELS]
    if unknown:
        raise HTTPException(status_code=422, detail=f"Unknown field(s): {', '.join(unknown)}")

    coerced = {k: coerce_field(k, v) for k, v in values.items()}
    session = getattr(request.app.state, "session", None)
    if session is None:
        return validate_config(coerced)
    return validate_config(coerced, session.used_pins, catalog_size=len(session.catalog))


@router.post("/reload", response_model=SessionView)
async def reload_addons(request: Request) -> SessionView:
    session = await load_session(request.app)
    return session.view()


@router.post("/save", response_model=SaveResponse)
async def save_addons(request: Request):
    session = await get_session(request)
    try:
        return await run_in_threadpool(session.save)
    except SaveBlocked as e:
        return JSONResponse(status_code=422, content=e.report.model_dump(mode="json"))
