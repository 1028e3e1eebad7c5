"""Project-wide constants (chunk sizing, upload limits, defaults)."""

CHUNK_SIZE_BYTES: int = 255 * 1024  # 255 KiB default chunk size

MAX_UPLOAD_BYTES: int = 5 * 1024 * 1024 * 1024  # 5 GiB

UPLOAD_READ_SIZE: int = 64 * 1024

DEFAULT_DATABASE_PATH: str = "./data/classreel.db"

DEFAULT_CONTENT_TYPE: str = "video/mp4"

ORPHAN_SWEEP_INTERVAL_SECONDS: int = 6 * 3600
ORPHAN_GRACE_SECONDS: int = 3600
