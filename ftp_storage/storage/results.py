"""Outcome models for storage operations."""

from enum import Enum
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field

from ftp_storage.core.errors import StorageError


class WriteStatus(str, Enum):
    SUCCESS = "success"
    PARTIAL = "partial"
    FAILURE = "failure"


class StepResult(BaseModel):
    """Outcome of a single remote step (directory, original or thumbnail)."""
    kind: str
    path: str
    size_key: Optional[str] = None
    ok: bool = True
    bytes_sent: int = 0
    error: Optional[str] = None


class WriteResult(BaseModel):
    """Outcome of ``write``.

    Truthiness follows the original upload only, so callers that just test
    ``if storage.write(...)`` keep working; thumbnail failures show up as
    ``status == PARTIAL`` and in ``steps``.
    """
    model_config = ConfigDict(arbitrary_types_allowed=True)

    path: str
    location: str
    steps: List[StepResult] = Field(default_factory=list)
    original_stored: bool = False
    exception: Optional[StorageError] = Field(default=None, exclude=True, repr=False)

    @property
    def status(self) -> WriteStatus:
        if not self.original_stored:
            return WriteStatus.FAILURE
        if any(not step.ok for step in self.steps):
            return WriteStatus.PARTIAL
        return WriteStatus.SUCCESS

    @property
    def failed_steps(self) -> List[StepResult]:
        return [step for step in self.steps if not step.ok]

    def raise_for_status(self) -> "WriteResult":
        """Raise the error that prevented the original from being stored."""
        if self.exception is not None and not self.original_stored:
            raise self.exception
        return self

    def __bool__(self) -> bool:
        return self.original_stored


class DeleteResult(BaseModel):
    """Outcome of ``delete``. Always truthy: deleting what is absent is fine."""
    path: str
    location: str
    steps: List[StepResult] = Field(default_factory=list)

    @property
    def removed(self) -> List[str]:
        return [step.path for step in self.steps if step.ok]

    def __bool__(self) -> bool:
        return True
