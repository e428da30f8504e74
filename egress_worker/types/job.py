"""
Job-related type definitions for internal use.
"""

import json
import time
from dataclasses import dataclass, field
from typing import Any

from pydantic import BaseModel, ValidationError, field_validator


class JobEnvelope(BaseModel):
    """
    Job envelope carried in a delivered message body.

    Wire format: {"id": string, "class_name": string, "params": any}
    """

    id: str | None = None
    class_name: str
    params: Any = None

    @field_validator("id", mode="before")
    @classmethod
    def _stringify_id(cls, value: Any) -> str | None:
        # Non-string ids are kept as their JSON text
        if value is None or isinstance(value, str):
            return value
        return json.dumps(value, separators=(",", ":"))

    @classmethod
    def decode(cls, body: bytes | str) -> "JobEnvelope | None":
        """
        Decode a message body into an envelope.

        Returns:
            The envelope, or None if the body is not valid JSON or has no class_name.
        """
        try:
            return cls.model_validate_json(body)
        except ValidationError:
            return None


@dataclass
class JobContext:
    """
    Context passed to a job for a single execution.
    Threaded explicitly through dispatch instead of living in thread-local state.
    """

    job_id: str | None
    class_name: str
    params: Any = None
    started_at: float = field(default_factory=time.monotonic)

    @classmethod
    def from_envelope(cls, envelope: JobEnvelope) -> "JobContext":
        return cls(
            job_id=envelope.id,
            class_name=envelope.class_name,
            params=envelope.params,
        )

    @property
    def elapsed_seconds(self) -> float:
        """Wall-clock seconds since the job started."""
        return time.monotonic() - self.started_at
