"""
健康检查路由
功能：用于监控存活状态
"""
from __future__ import annotations

from pathlib import Path
from typing import Any, Dict

from fastapi import APIRouter, Request

from core.config import get_settings

router = APIRouter(prefix="/api/v1", tags=["Health"])


@router.get("/health")
def health(request: Request) -> Dict[str, Any]:
    """
    Health check (frontend / deploy platform / monitoring)
    - always returns ok=True if API is alive
    - extra diagnostics: output dir, device target, session state
    - does not contact the device
    """
    s = get_settings()
    outputs = Path(s.output_dir)
    session = getattr(request.app.state, "session", None)

    return {
        "ok": True,
        "env": s.app_env,
        "device": s.device_base_url,
        "paths": {
            "output_dir": str(outputs),
        },
        "checks": {
            "output_dir_exists": outputs.exists(),
            "session_loaded": session is not None,
            "playing": bool(session is not None and session.is_playing),
        },
    }
