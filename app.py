# app.py
"""
Add-ons configurator main entry (FastAPI)

- App Factory pattern for testing & packaging
- Lifespan startup: ensure output dir + cleanup old previews
- Lifespan shutdown: stop playback, close the device client
- Dev CORS: allow localhost any port (supports credentials)
- Prod CORS: MUST specify explicit origins (no wildcard with credentials)
"""

from __future__ import annotations

import logging
import time
from contextlib import asynccontextmanager
from pathlib import Path
from typing import Optional

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from core.config import get_settings
from routers.addons import router as addons_router
from routers.buzzer import router as buzzer_router
from routers.health import router as health_router

logger = logging.getLogger("addons")


def _is_dev(app_env: str) -> bool:
    v = (app_env or "").strip().lower()
    return v in {"dev", "development", "local"}


def _parse_origins(raw: Optional[str]) -> list[str]:
    """
    Parse comma-separated origins string into list.
    Example: "https://a.com,https://b.com"
    """
    if not raw:
        return []
    parts = [p.strip() for p in raw.split(",")]
    return [p for p in parts if p]


def cleanup_old_previews(dir_path: Path, older_than_seconds: int = 86400) -> int:
    """Remove preview WAVs older than `older_than_seconds`. Returns the count."""
    if not dir_path.exists():
        return 0

    threshold = time.time() - older_than_seconds
    deleted = 0
    for p in dir_path.glob("preview_*.wav"):
        try:
            if p.stat().st_mtime < threshold:
                p.unlink()
                deleted += 1
        except OSError as e:
            logger.warning("cleanup failed for %s: %s", p, e)
    return deleted


@asynccontextmanager
async def lifespan(app: FastAPI):
    s = get_settings()

    # 1) Ensure directories exist
    try:
        Path(s.output_dir).mkdir(parents=True, exist_ok=True)
    except Exception as e:
        logger.critical("Failed to create runtime dirs: %s", e)
        raise

    # 2) Cleanup old previews (24h)
    try:
        removed = cleanup_old_previews(Path(s.output_dir), older_than_seconds=86400)
        if removed:
            logger.info("Startup cleanup: previews=%s", removed)
    except Exception as e:
        logger.warning("Startup cleanup warning: %s", e)

    yield

    session = getattr(app.state, "session", None)
    if session is not None:
        session.stop()
    client = getattr(app.state, "device_client", None)
    if client is not None:
        client.close()
    logger.info("Service shutting down...")


def create_app() -> FastAPI:
    # logging once (avoid duplicated handlers in reload/test)
    if not logging.getLogger().handlers:
        logging.basicConfig(
            level=logging.INFO,
            format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
        )

    s = get_settings()
    app = FastAPI(
        title="Add-Ons Configurator",
        version="0.1.0",
        description="Add-on pin/buzzer configuration with client-side validation and intro song preview",
        lifespan=lifespan,
    )

    # expose settings for debugging
    app.state.settings = s
    app.state.session = None

    # ---- CORS ----
    if _is_dev(s.app_env):
        allow_origins: list[str] = []
        allow_origin_regex = r"http://(?:localhost|127\.0\.0\.1)(?::\d+)?"
        allow_credentials = True
    else:
        allow_origins = _parse_origins(s.cors_allow_origins)
        allow_origin_regex = None
        # If you don't specify explicit origins, we DISABLE credentials (safe fallback)
        allow_credentials = bool(allow_origins)

    app.add_middleware(
        CORSMiddleware,
        allow_origins=allow_origins,
        allow_origin_regex=allow_origin_regex,
        allow_credentials=allow_credentials,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    # ---- Routers ----
    app.include_router(health_router)
    app.include_router(addons_router)
    app.include_router(buzzer_router)

    @app.get("/", include_in_schema=False)
    def root():
        return JSONResponse(
            {
                "service": "Add-Ons Configurator",
                "status": "ok",
                "docs_url": "/docs",
            }
        )

    return app


app = create_app()

if __name__ == "__main__":
    import uvicorn

    uvicorn.run("app:app", host="0.0.0.0", port=8000, reload=True)
