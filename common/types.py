"""Shared data type definitions (AccountType, ChunkDescriptor, UploadSummary)."""

from dataclasses import dataclass
from enum import Enum


class AccountType(str, Enum):
    """Role of an account; drives license eligibility and video visibility."""
    STUDENT = "student"
    TEACHER = "teacher"


@dataclass(frozen=True)
class ChunkDescriptor:
    """
    Metadata for a single stored chunk (payload excluded).
    """
    file_id: str
    chunk_index: int
    size: int
    checksum: str


@dataclass(frozen=True)
class UploadSummary:
    """
    Reconciled totals returned when an upload is finalized.
    """
    file_id: str
    content_length: int
    chunk_count: int
    checksum: str
