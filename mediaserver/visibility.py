"""Role-keyed visibility rules for video listings."""

from abc import ABC, abstractmethod
from typing import Dict, List, Optional, Tuple

from common.types import AccountType
from mediaserver.repositories.account_repository import Account


class VisibilityPolicy(ABC):
    """
    Decides which videos an account may list, expressed as a SQL predicate
    over the ``videos`` table.
    """

    @abstractmethod
    def predicate(self, account: Account) -> Optional[Tuple[str, List[str]]]:
        """
        Returns:
            ``(where_clause, params)``, or None when nothing can be visible
        """


class OwnVideosPolicy(VisibilityPolicy):
    """Students see only what they uploaded."""

    def predicate(self, account: Account) -> Optional[Tuple[str, List[str]]]:
        return "owner_email = ?", [account.email]


class ClassroomPolicy(VisibilityPolicy):
    """Teachers see every video tagged with one of their class codes at their school."""

    def predicate(self, account: Account) -> Optional[Tuple[str, List[str]]]:
        if not account.class_codes:
            return None
        class_codes = sorted(account.class_codes)
        placeholders = ','.join('?' for _ in class_codes)
        return (
            f"class_code IN ({placeholders}) AND school_name = ?",
            class_codes + [account.school_name],
        )


VISIBILITY_POLICIES: Dict[AccountType, VisibilityPolicy] = {
    AccountType.STUDENT: OwnVideosPolicy(),
    AccountType.TEACHER: ClassroomPolicy(),
}


def policy_for(account_type: AccountType) -> VisibilityPolicy:
    try:
        return VISIBILITY_POLICIES[AccountType(account_type)]
    except (KeyError, ValueError):
        raise ValueError(f"No visibility policy for account type '{account_type}'")
