"""Configuration and settings for the stagecue engine."""

from __future__ import annotations

import os

from pydantic import BaseModel, Field


class AlertOptions(BaseModel):
    """Thresholds for ring, countdown and flash alerts."""

    ring_enabled: bool = Field(default=True, description="Play the ring when the next part approaches")
    ring_threshold: float = Field(
        default=10.0, gt=0, description="Seconds before the next part at which alerts trigger"
    )
    flash_epsilon: float = Field(
        default=0.35, gt=0, description="Window after a subpart start in which it flashes"
    )
    flash_duration: float = Field(
        default=0.4, gt=0, description="How long a flash highlight stays on, in seconds"
    )


class TimerOptions(BaseModel):
    """Intervals for the session timers."""

    poll_interval: float = Field(
        default=0.5, gt=0, description="Safety-net clock poll interval in seconds"
    )
    autosave_interval: float = Field(
        default=6.0, gt=0, description="Auto-save interval in seconds"
    )
    snapshot_refresh_interval: float = Field(
        default=30.0, gt=0, description="Interval between snapshot refreshes from the store"
    )
    jump_countdown_seconds: int = Field(
        default=5, ge=1, description="Length of the jump countdown in ticks"
    )
    jump_tick_interval: float = Field(
        default=1.0, gt=0, description="Seconds between jump countdown ticks"
    )


class EngineConfig(BaseModel):
    """Configuration for a stagecue engine instance."""

    default_duration: float = Field(
        default=10.0,
        gt=0,
        description="Display-only duration assumed for segments with a start but no end",
    )
    history_limit: int = Field(
        default=6, ge=1, description="Maximum undo entries kept per assignment target"
    )
    alerts: AlertOptions = Field(default_factory=AlertOptions, description="Alert thresholds")
    timers: TimerOptions = Field(default_factory=TimerOptions, description="Timer intervals")

    @classmethod
    def from_env(cls, **overrides) -> EngineConfig:
        """Build a config, letting STAGECUE_* environment variables override defaults.

        Recognised variables: STAGECUE_RING_THRESHOLD, STAGECUE_DEFAULT_DURATION,
        STAGECUE_AUTOSAVE_INTERVAL.
        """
        data = cls(**overrides).model_dump()

        ring = os.environ.get("STAGECUE_RING_THRESHOLD")
        if ring is not None:
            data["alerts"]["ring_threshold"] = float(ring)

        duration = os.environ.get("STAGECUE_DEFAULT_DURATION")
        if duration is not None:
            data["default_duration"] = float(duration)

        autosave = os.environ.get("STAGECUE_AUTOSAVE_INTERVAL")
        if autosave is not None:
            data["timers"]["autosave_interval"] = float(autosave)

        return cls.model_validate(data)
