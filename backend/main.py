"""Ensure .env is loaded before anything else."""
import os
from pathlib import Path
from dotenv import load_dotenv

# Try backend/.env first (running from backend/), then try repo-root/backend/.env
_env_file = Path(__file__).resolve().parent / ".env"
if not _env_file.exists():
    _env_file = Path(__file__).resolve().parent.parent / "backend" / ".env"
load_dotenv(dotenv_path=str(_env_file), override=True)

import logging

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from mybest.core.config import settings
from mybest.api.routes.health import router as health_router
from mybest.api.routes.ai import router as ai_router

logging.basicConfig(level=logging.INFO)
logger = logging.getLogger(__name__)

app = FastAPI(title=settings.APP_NAME)


@app.on_event('startup')
def on_startup():
    # ---- AI gateway startup diagnostics ----
    from mybest.services.ai_gateway.factory import (
        configured_providers,
        get_fallback_chain,
        resolve_credentials,
    )

    chain = get_fallback_chain()
    configured = configured_providers(resolve_credentials(config=settings), settings)
    logger.info("=" * 50)
    logger.info("AI Gateway Startup Diagnostics")
    logger.info("  .env path searched: %s", _env_file)
    logger.info("  Provider order: %s", ",".join(p.value for p in chain.preference))
    logger.info("  Configured providers: %s", ",".join(configured) or "none (canned replies only)")
    logger.info("  Model overrides: %s", settings.model_overrides() or "defaults")
    logger.info("  Deadline: %ss, rate-limit backoff: %ss",
                settings.AI_DEADLINE_SECONDS, settings.AI_RATE_LIMIT_BACKOFF_SECONDS)
    logger.info("  CWD: %s", os.getcwd())
    logger.info("  PID: %d", os.getpid())
    logger.info("=" * 50)


app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials=True,
    allow_methods=['*'],
    allow_headers=['*'],
)

app.include_router(health_router)
app.include_router(ai_router)
