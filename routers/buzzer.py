from __future__ import annotations

import logging
from pathlib import Path
from typing import Dict, List, Optional
from uuid import uuid4

from fastapi import APIRouter, Body, HTTPException, Request
from fastapi.concurrency import run_in_threadpool
from fastapi.responses import FileResponse

from core.config import get_settings
from core.errors import RangeError
from core.models import PlaybackStatus, PlayRequest, RenderRequest, SongCheck, SongCheckRequest
from core.notes import NOTE_TABLE, Song, check_song_length, invalid_notes_message, invalid_tokens, normalize, strip_song_text
from core.session import EditingSession
from core.synthesizer import RecordingOscillator, write_song_wav, write_wav
from routers.addons import get_session

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/v1/buzzer", tags=["Buzzer"])


def _volume(session: EditingSession) -> int:
    volume = session.values.get("buzzerVolume", 100)
    return volume if isinstance(volume, int) else 100


def _preview_path() -> Path:
    return Path(get_settings().output_dir) / f"preview_{uuid4().hex[:12]}.wav"


@router.get("/notes")
def list_notes() -> List[Dict[str, object]]:
    """The whole note vocabulary, in table order."""
    return [{"name": name, "frequency": hz} for name, hz in NOTE_TABLE.items()]


@router.post("/song/validate", response_model=SongCheck)
def validate_song_text(req: SongCheckRequest) -> SongCheck:
    tokens = normalize(req.text)
    try:
        check_song_length(strip_song_text(req.text))
    except RangeError as e:
        return SongCheck(ok=False, tokens=tokens, message=e.message)

    bad = invalid_tokens(tokens)
    if bad:
        return SongCheck(ok=False, tokens=tokens, invalid=bad, message=invalid_notes_message(bad))
    return SongCheck(ok=True, tokens=tokens)


@router.get("/playback", response_model=PlaybackStatus)
async def playback_status(request: Request) -> PlaybackStatus:
    session = await get_session(request)
    return session.playback_status()


@router.post("/play", response_model=PlaybackStatus)
async def toggle_play(request: Request, req: Optional[PlayRequest] = Body(default=None)) -> PlaybackStatus:
    """Play if idle, stop if playing."""
    session = await get_session(request)
    session.toggle_play(req.selection if req else None)
    return session.playback_status()


@router.post("/stop", response_model=PlaybackStatus)
async def stop_playback(request: Request) -> PlaybackStatus:
    session = await get_session(request)
    session.stop()
    return session.playback_status()


@router.post("/render")
async def render_preview(request: Request, req: RenderRequest = Body(...)) -> FileResponse:
    """Render a selection (or raw text) to a WAV preview."""
    session = await get_session(request)

    song: Optional[Song]
    if req.text is not None:
        try:
            check_song_length(strip_song_text(req.text))
        except RangeError as e:
            raise HTTPException(status_code=422, detail=e.message)
        song = Song(tokens=tuple(normalize(req.text)), tone_duration_ms=req.tone_duration, name="preview")
    else:
        selection = req.selection if req.selection is not None else session.values.get("buzzerIntroSong", -1)
        song = session.song_for(selection) if isinstance(selection, int) else None
    if song is None:
        raise HTTPException(status_code=404, detail="Nothing to render for this selection")

    volume = _volume(session)
    out_path = _preview_path()
    try:
        path = await run_in_threadpool(write_song_wav, song, out_path, volume=volume)
    except Exception as e:
        logger.exception("Preview render failed: %s", e)
        raise HTTPException(status_code=500, detail="Failed to render preview")

    return FileResponse(str(path), media_type="audio/wav", filename=f"{song.name}.wav")


@router.get("/playback.wav")
async def playback_recording(request: Request) -> FileResponse:
    """What the last (or current) playback sounded like, as WAV."""
    session = await get_session(request)
    osc = session.sequencer.oscillator
    if not isinstance(osc, RecordingOscillator) or not osc.has_recording:
        raise HTTPException(status_code=404, detail="No playback recorded")

    # a finished recording ends at its last change, not at "now"
    end_time = None if session.is_playing else osc.timeline[-1][0]
    samples = osc.render(end_time=end_time, volume=_volume(session))
    try:
        path = await run_in_threadpool(write_wav, samples, _preview_path())
    except Exception as e:
        logger.exception("Playback render failed: %s", e)
        raise HTTPException(status_code=500, detail="Failed to render playback")

    return FileResponse(str(path), media_type="audio/wav", filename="playback.wav")
