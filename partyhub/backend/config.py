"""Configuration helpers for backend runtime."""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass

DEFAULT_MEDIA_URL = "https://res.cloudinary.com/djetzdm5n/image/upload/v1769432962/appxv-events/jp6fbqmcpg53lfbhtm42.png"

LOG_FORMAT = "%(asctime)s %(levelname)s %(name)s: %(message)s"
HANDLER_NAME = "partyhub"


@dataclass(frozen=True)
class Settings:
    host: str
    port: int
    database_url: str | None
    default_plan: str
    keepalive_seconds: float
    raffle_countdown_seconds: float
    fallback_media_url: str
    log_level: str
    idle_player_seconds: float = 600.0
    sweep_interval_seconds: float = 60.0


def load_settings() -> Settings:
    port_raw = os.getenv("PARTYHUB_PORT", "8000")
    return Settings(
        host=os.getenv("PARTYHUB_HOST", "127.0.0.1"),
        port=int(port_raw),
        database_url=os.getenv("PARTYHUB_DATABASE_URL"),
        default_plan=os.getenv("PARTYHUB_DEFAULT_PLAN", "freemium"),
        keepalive_seconds=float(os.getenv("PARTYHUB_KEEPALIVE_SECONDS", "30")),
        raffle_countdown_seconds=float(os.getenv("PARTYHUB_RAFFLE_COUNTDOWN_SECONDS", "5")),
        fallback_media_url=os.getenv("PARTYHUB_FALLBACK_MEDIA_URL", DEFAULT_MEDIA_URL),
        log_level=os.getenv("PARTYHUB_LOG_LEVEL", "INFO").upper(),
        idle_player_seconds=float(os.getenv("PARTYHUB_IDLE_PLAYER_SECONDS", "600")),
        sweep_interval_seconds=float(os.getenv("PARTYHUB_SWEEP_INTERVAL_SECONDS", "60")),
    )


def configure_logging(level: str = "INFO") -> logging.Logger:
    """Attach a single stream handler to the ``partyhub`` logger."""
    logger = logging.getLogger("partyhub")
    logger.setLevel(level)
    if not any(handler.get_name() == HANDLER_NAME for handler in logger.handlers):
        handler = logging.StreamHandler()
        handler.set_name(HANDLER_NAME)
        handler.setFormatter(logging.Formatter(LOG_FORMAT))
        logger.addHandler(handler)
    return logger
