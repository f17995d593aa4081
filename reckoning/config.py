from __future__ import annotations

import logging
import os
from dataclasses import dataclass

from dotenv import load_dotenv

from reckoning.models.emergence import EmergenceThresholds
from reckoning.models.scenes import BoundaryDetectionConfig

load_dotenv()


def _env_float(name: str, default: float) -> float:
    raw = os.getenv(name)
    if raw is None:
        return default
    return float(raw)


@dataclass(frozen=True)
class Settings:
    db_path: str = os.getenv("DB_PATH", "reckoning.db")
    dev_mode: bool = os.getenv("DEV_MODE", "0") == "1"
    villain_fear: float = _env_float("EMERGENCE_VILLAIN_FEAR", 0.6)
    villain_resentment: float = _env_float("EMERGENCE_VILLAIN_RESENTMENT", 0.5)
    ally_trust: float = _env_float("EMERGENCE_ALLY_TRUST", 0.6)
    ally_respect: float = _env_float("EMERGENCE_ALLY_RESPECT", 0.6)
    ally_affection: float = _env_float("EMERGENCE_ALLY_AFFECTION", 0.5)
    high_threshold: float = _env_float("EMERGENCE_HIGH", 0.8)
    medium_threshold: float = _env_float("EMERGENCE_MEDIUM", 0.6)
    min_confidence: float = _env_float("EMERGENCE_MIN_CONFIDENCE", 0.3)
    boundary_confidence: float = _env_float("SCENE_BOUNDARY_CONFIDENCE", 0.6)

    def thresholds(self) -> EmergenceThresholds:
        return EmergenceThresholds(
            villain_fear=self.villain_fear,
            villain_resentment=self.villain_resentment,
            ally_trust=self.ally_trust,
            ally_respect=self.ally_respect,
            ally_affection=self.ally_affection,
            high=self.high_threshold,
            medium=self.medium_threshold,
            min_confidence=self.min_confidence,
        )

    def boundary_config(self) -> BoundaryDetectionConfig:
        return BoundaryDetectionConfig(confidence_threshold=self.boundary_confidence)

    def redacted(self) -> dict[str, object]:
        return {
            "db_path": self.db_path,
            "dev_mode": self.dev_mode,
            "thresholds": self.thresholds().model_dump(),
            "boundary_confidence": self.boundary_confidence,
        }


def configure_logging(dev_mode: bool) -> None:
    level = logging.DEBUG if dev_mode else logging.INFO
    logging.basicConfig(
        level=level,
        format="%(asctime)s %(levelname)s [%(name)s] %(message)s",
    )
