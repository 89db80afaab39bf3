"""Error types and result objects shared by the backup engine."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import StrEnum
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from honorsave.models.snapshot import Snapshot


class HonorSaveError(Exception):
    """Base class for engine errors."""


class ReplaceError(HonorSaveError, OSError):
    """A directory could not be deleted or copied, even after fallbacks."""


class FlagMissingError(HonorSaveError):
    """The snapshot carries no copy of the Honour Mode flag file."""


class LedgerError(HonorSaveError):
    """The ledger could not be written."""


class ErrorKind(StrEnum):
    NONE = "none"
    INVALID = "invalid"
    DUPLICATE = "duplicate"
    NOT_FOUND = "not_found"
    NOT_CONFIRMED = "not_confirmed"
    IO = "io"
    FLAG_PERMISSION = "flag_permission"
    FLAG_DECLINED = "flag_declined"


@dataclass
class OperationResult:
    """Result of a backup / restore / delete operation."""

    success: bool = True
    error: str = ""
    error_kind: ErrorKind = ErrorKind.NONE
    warnings: list[str] = field(default_factory=list)
    snapshot: Snapshot | None = None

    def fail(self, kind: ErrorKind, message: str) -> OperationResult:
        self.success = False
        self.error_kind = kind
        self.error = message
        return self
