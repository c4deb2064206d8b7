import logging
import os
from functools import lru_cache
from typing import Optional

from dotenv import load_dotenv
from pydantic import BaseModel

from scorer import ScoringWeights

load_dotenv()  # Load .env before anything reads the environment


class Settings(BaseModel):
    gemini_api_key: Optional[str] = None
    briefing_model: str = "gemini-2.5-flash"
    log_level: str = "INFO"
    port: int = 8022
    scoring: ScoringWeights = ScoringWeights()


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """Settings from the environment (and .env).  Cached; call `get_settings.cache_clear()` in tests."""
    weights_json = os.getenv("DAYFORGE_SCORING_WEIGHTS")
    return Settings(
        gemini_api_key=os.getenv("GEMINI_API_KEY") or None,
        briefing_model=os.getenv("BRIEFING_MODEL", "gemini-2.5-flash"),
        log_level=os.getenv("DAYFORGE_LOG_LEVEL", "INFO").upper(),
        port=int(os.getenv("DAYFORGE_PORT", "8022")),
        scoring=ScoringWeights.model_validate_json(weights_json) if weights_json else ScoringWeights(),
    )


def configure_logging(level: Optional[str] = None) -> None:
    logging.basicConfig(
        level=level or get_settings().log_level,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
