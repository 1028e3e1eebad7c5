"""Configuration settings for the media server."""

import os

from common.constants import MAX_UPLOAD_BYTES, ORPHAN_GRACE_SECONDS, ORPHAN_SWEEP_INTERVAL_SECONDS


SERVER_HOST = os.environ.get("CLASSREEL_HOST", "0.0.0.0")

SERVER_PORT = int(os.environ.get("CLASSREEL_PORT", "3000"))

LICENSE_FILE = os.environ.get("CLASSREEL_LICENSE_FILE")

VALID_SCHOOL_NAMES = [
    name.strip()
    for name in os.environ.get("CLASSREEL_SCHOOL_NAMES", "Burnside,STAC,School C").split(",")
    if name.strip()
]

UPLOAD_LIMIT_BYTES = int(os.environ.get("CLASSREEL_MAX_UPLOAD_BYTES", str(MAX_UPLOAD_BYTES)))

ORPHAN_SWEEP_INTERVAL = int(os.environ.get("CLASSREEL_ORPHAN_SWEEP_INTERVAL", str(ORPHAN_SWEEP_INTERVAL_SECONDS)))

ORPHAN_GRACE = int(os.environ.get("CLASSREEL_ORPHAN_GRACE_SECONDS", str(ORPHAN_GRACE_SECONDS)))

ALLOWED_CONTENT_TYPE_PREFIX = "video/"
