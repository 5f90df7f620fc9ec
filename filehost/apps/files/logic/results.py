"""Result types returned by multi-item operations."""

import uuid
from dataclasses import dataclass, field
from typing import Any, final

from filehost.apps.files.exceptions import FileHostError


@final
@dataclass(slots=True)
class PurgeResult:
    """Outcome of a permanent delete.

    Rows are removed even when some storage objects could not be deleted;
    those keys are reported in ``failed_keys`` for later cleanup.
    """

    files_purged: int = 0
    folders_purged: int = 0
    bytes_freed: int = 0
    failed_keys: list[str] = field(default_factory=list)

    @property
    def ok(self) -> bool:
        """Whether every storage object was deleted."""
        return not self.failed_keys

    def merge(self, other: 'PurgeResult') -> 'PurgeResult':
        """Add another result into this one."""
        self.files_purged += other.files_purged
        self.folders_purged += other.folders_purged
        self.bytes_freed += other.bytes_freed
        self.failed_keys.extend(other.failed_keys)
        return self


@final
@dataclass(frozen=True, slots=True)
class BatchError:
    """Failure of one item in a batch."""

    id: str
    type: str
    code: str
    message: str


@final
@dataclass(slots=True)
class BatchResult:
    """Per-item outcome of a batch; one failure never aborts the rest."""

    successes: list[Any] = field(default_factory=list)
    errors: list[BatchError] = field(default_factory=list)

    def add_error(
        self,
        item_id: uuid.UUID | str,
        item_type: str,
        error: FileHostError,
    ) -> None:
        """Record a failed item."""
        self.errors.append(
            BatchError(
                id=str(item_id),
                type=item_type,
                code=error.code,
                message=str(error),
            ),
        )
