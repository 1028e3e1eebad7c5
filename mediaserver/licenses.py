"""Static license key table: account quota and eligible account types per key."""

import json
from dataclasses import dataclass
from pathlib import Path
from types import MappingProxyType
from typing import Dict, FrozenSet, Iterable, List, Mapping, Optional, Union

from common.logging_config import get_logger
from common.types import AccountType

logger = get_logger(__name__)


@dataclass(frozen=True)
class LicenseKeyLimit:
    """
    Provisioning limits attached to one license key.
    """
    license_key: str
    max_accounts: int
    allowed_account_types: FrozenSet[AccountType]

    def allows(self, account_type: Union[AccountType, str]) -> bool:
        try:
            return AccountType(account_type) in self.allowed_account_types
        except ValueError:
            return False


DEFAULT_LICENSE_LIMITS: Dict[str, dict] = {
    "BurnsideHighSchool": {"max_accounts": 4, "account_types": []},
    "MP003": {"max_accounts": 8, "account_types": []},
    "3399": {"max_accounts": 20, "account_types": []},
    "STUDENT_KEY_1": {"max_accounts": 10, "account_types": ["student"]},
    "STUDENT_KEY_2": {"max_accounts": 0, "account_types": ["student"]},
    "TEACHER_KEY_1": {"max_accounts": 0, "account_types": ["teacher"]},
    "TEACHER_KEY_2": {"max_accounts": 10, "account_types": ["teacher"]},
}


class LicenseRegistry:
    """
    Read-only lookup of license key limits, built once at startup.
    """

    def __init__(self, limits: Iterable[LicenseKeyLimit]):
        table = {}
        for limit in limits:
            if limit.max_accounts < 0:
                raise ValueError(f"License {limit.license_key} has a negative account limit")
            table[limit.license_key] = limit
        self._limits: Mapping[str, LicenseKeyLimit] = MappingProxyType(table)

    @classmethod
    def from_mapping(cls, data: Mapping[str, dict]) -> "LicenseRegistry":
        """
        Build a registry from ``{key: {"max_accounts": n, "account_types": [...]}}``.
        """
        limits = []
        for license_key, entry in data.items():
            limits.append(LicenseKeyLimit(
                license_key=license_key,
                max_accounts=int(entry.get("max_accounts", 0)),
                allowed_account_types=frozenset(
                    AccountType(account_type) for account_type in entry.get("account_types", [])
                ),
            ))
        return cls(limits)

    @classmethod
    def from_file(cls, path: Union[str, Path]) -> "LicenseRegistry":
        with open(path, 'r') as f:
            data = json.load(f)
        registry = cls.from_mapping(data)
        logger.info(f"Loaded {len(registry)} license keys from {path}")
        return registry

    @classmethod
    def default(cls) -> "LicenseRegistry":
        return cls.from_mapping(DEFAULT_LICENSE_LIMITS)

    def limit_for(self, license_key: str) -> Optional[LicenseKeyLimit]:
        """
        Look up a license key. Unknown keys return None and callers treat
        them as having no account slots.
        """
        return self._limits.get(license_key)

    def is_allowed(self, license_key: str, account_type: Union[AccountType, str]) -> bool:
        limit = self.limit_for(license_key)
        return limit is not None and limit.allows(account_type)

    def keys(self) -> List[str]:
        return list(self._limits.keys())

    def __len__(self) -> int:
        return len(self._limits)


def load_license_registry(license_file: Optional[str] = None) -> LicenseRegistry:
    """
    Build the process-wide registry from a JSON file when one is configured,
    otherwise from the built-in table.
    """
    if license_file:
        return LicenseRegistry.from_file(license_file)
    logger.info("Using built-in license key table")
    return LicenseRegistry.default()
