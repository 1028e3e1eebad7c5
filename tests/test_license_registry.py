"""Tests for the license key table."""

import json

import pytest

from common.types import AccountType
from mediaserver.licenses import LicenseKeyLimit, LicenseRegistry, load_license_registry


def test_default_table():
    registry = LicenseRegistry.default()

    assert len(registry) == 7
    assert registry.limit_for("STUDENT_KEY_1").max_accounts == 10
    assert registry.limit_for("TEACHER_KEY_2").max_accounts == 10
    assert registry.limit_for("BurnsideHighSchool").max_accounts == 4
    assert registry.limit_for("MP003").max_accounts == 8
    assert registry.limit_for("3399").max_accounts == 20


def test_eligibility():
    registry = LicenseRegistry.default()

    assert registry.is_allowed("STUDENT_KEY_1", "student")
    assert registry.is_allowed("TEACHER_KEY_2", AccountType.TEACHER)
    assert not registry.is_allowed("STUDENT_KEY_1", "teacher")
    assert not registry.is_allowed("MP003", "student")
    assert not registry.is_allowed("UNKNOWN", "student")
    assert not registry.is_allowed("STUDENT_KEY_1", "principal")


def test_unknown_key_has_no_limit():
    assert LicenseRegistry.default().limit_for("UNKNOWN") is None


def test_registry_is_read_only():
    registry = LicenseRegistry.default()

    with pytest.raises(TypeError):
        registry._limits["NEW"] = LicenseKeyLimit("NEW", 1, frozenset())


def test_negative_limit_rejected():
    with pytest.raises(ValueError):
        LicenseRegistry([LicenseKeyLimit("BAD", -1, frozenset())])


def test_load_from_file(tmp_path):
    license_file = tmp_path / "licenses.json"
    license_file.write_text(json.dumps({
        "SCHOOL_A": {"max_accounts": 3, "account_types": ["student", "teacher"]},
    }))

    registry = load_license_registry(str(license_file))

    assert registry.keys() == ["SCHOOL_A"]
    assert registry.is_allowed("SCHOOL_A", "student")
    assert registry.is_allowed("SCHOOL_A", "teacher")


def test_load_without_file_uses_defaults():
    assert load_license_registry(None).keys() == LicenseRegistry.default().keys()
