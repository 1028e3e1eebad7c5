"""SHA-256 helpers for chunk payloads and whole-file digests."""

import hashlib

from common.exceptions import ChunkIntegrityError
from common.types import ChunkDescriptor


def compute_checksum(data: bytes) -> str:
    """
    Compute SHA-256 checksum for given data.

    Args:
        data: Bytes to compute checksum for

    Returns:
        Hexadecimal string representation of SHA-256 hash
    """
    return hashlib.sha256(data).hexdigest()


def verify_chunk(descriptor: ChunkDescriptor, data: bytes) -> None:
    """
    Check a chunk payload against its stored size and checksum.

    Raises:
        ChunkIntegrityError: If the payload does not match the descriptor
    """
    if len(data) != descriptor.size:
        raise ChunkIntegrityError(
            f"Chunk {descriptor.chunk_index} of file {descriptor.file_id} has "
            f"{len(data)} bytes, expected {descriptor.size}"
        )
    if compute_checksum(data) != descriptor.checksum:
        raise ChunkIntegrityError(
            f"Checksum mismatch for chunk {descriptor.chunk_index} of file {descriptor.file_id}"
        )


class IncrementalChecksumCalculator:
    """
    Calculate a SHA-256 checksum over a stream of pieces.

    Usage:
        calculator = IncrementalChecksumCalculator()
        calculator.update(piece1)
        calculator.update(piece2)
        final_checksum = calculator.finalize()
    """

    def __init__(self):
        self._hasher = hashlib.sha256()
        self._finalized = False

    def update(self, data: bytes) -> None:
        if self._finalized:
            raise ValueError("Cannot update after finalization")
        self._hasher.update(data)

    def finalize(self) -> str:
        self._finalized = True
        return self._hasher.hexdigest()
