"""Tests for log masking and component logger setup."""

import logging

from common.logging_config import SensitiveDataFilter, setup_logging


def make_record(msg, args=()):
    return logging.LogRecord("mediaserver.test", logging.INFO, __file__, 1, msg, args, None)


def test_masks_password_and_license_key():
    record = make_record("register password=hunter2 license_key=STUDENT_KEY_1 email=a@b.c")

    SensitiveDataFilter().filter(record)

    assert "hunter2" not in record.msg
    assert "STUDENT_KEY_1" not in record.msg
    assert "email=a@b.c" in record.msg


def test_masks_bcrypt_hash_in_args():
    bcrypt_hash = "$2b$10$" + "a" * 53
    record = make_record("stored %s", (bcrypt_hash,))

    SensitiveDataFilter().filter(record)

    assert record.args == ("***BCRYPT***",)


def test_setup_logging_is_idempotent():
    first = setup_logging("classreel-test", log_level="DEBUG")
    second = setup_logging("classreel-test")

    assert first is second
    assert len(first.handlers) == 1
    assert first.propagate is False
