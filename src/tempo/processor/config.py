"""Configuration model for the job processor.

Pydantic v2 model with the tunable (non-structural) constants of a run:
parallelism, failure cap, pickup interval, and blocking-failure policy.
"""

from __future__ import annotations

from pathlib import Path
from typing import Literal

import yaml
from pydantic import BaseModel, ConfigDict, Field


class ProcessorConfig(BaseModel):
    """Tunables for ``JobProcessor``.

    Defaults run 4 jobs in parallel, abort after 10 failures, pick up work
    every 500 ms, and treat a failed blocking job as fatal to the run.
    """

    model_config = ConfigDict(extra="forbid")

    max_parallel_jobs: int = Field(
        default=4,
        ge=1,
        le=256,
        description="Maximum jobs in the running queue at once.",
    )
    max_failed_jobs: int = Field(
        default=10,
        ge=1,
        description="Stop picking new jobs once this many have failed. "
        "Jobs already running are allowed to settle before the run ends.",
    )
    pickup_interval_seconds: float = Field(
        default=0.5,
        gt=0.0,
        le=60.0,
        description="Period between scheduler ticks.",
    )
    fail_on_blocking_job_error: bool = Field(
        default=True,
        description="Treat a failed blocking job as fatal: no further jobs are "
        "picked and the run ends once running jobs drain.",
    )
    blocking_failure_policy: Literal["any", "most_recent"] = Field(
        default="any",
        description="Which failures trigger the blocking-failure gate. "
        "'any': any blocking job in the failed queue. "
        "'most_recent': only when the most recent failure is a blocking job.",
    )
    exclusive_blocking: bool = Field(
        default=True,
        description="Hold a blocking job at the top of the queue until running "
        "jobs drain, so it never runs alongside another job.",
    )
    wake_on_settle: bool = Field(
        default=True,
        description="Run the next tick as soon as a job settles instead of "
        "waiting for the full pickup interval.",
    )
    failure_message: str = Field(
        default="Network Error",
        description="Short message prefix recorded on failed jobs.",
    )

    @classmethod
    def from_yaml(cls, path: Path) -> ProcessorConfig:
        """Load configuration from a YAML file (empty file → defaults)."""
        with open(path) as f:
            data = yaml.safe_load(f) or {}
        return cls.model_validate(data)

    @classmethod
    def from_yaml_string(cls, yaml_str: str) -> ProcessorConfig:
        """Load configuration from a YAML string."""
        data = yaml.safe_load(yaml_str) or {}
        return cls.model_validate(data)

    def to_yaml(self) -> str:
        """Serialize to YAML (round-trips through ``from_yaml_string``)."""
        return yaml.safe_dump(self.model_dump(), sort_keys=False)
