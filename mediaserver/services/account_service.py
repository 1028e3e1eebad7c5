"""Account directory service: provisioning under license quotas, class codes, sign-in."""

import sqlite3
from typing import Callable, Iterable, Optional

from common.database import transaction
from common.exceptions import (
    AccountNotFoundError,
    DuplicateEmailError,
    InvalidCredentialsError,
    InvalidClassCodeError,
    InvalidLicenseKeyError,
    NotMemberError,
    QuotaExceededError,
)
from common.logging_config import get_logger
from common.types import AccountType
from mediaserver.auth import verify_password
from mediaserver.licenses import LicenseRegistry
from mediaserver.repositories.account_repository import Account, AccountRepository
from mediaserver.services.media_service import MediaService
from mediaserver.utils import generate_uuid, get_current_time

logger = get_logger(__name__)

INVALID_CREDENTIALS_MESSAGE = "Invalid email or password"


def _clean_class_code(class_code: str) -> str:
    class_code = class_code.strip()
    if not class_code:
        raise InvalidClassCodeError("Class code must not be blank")
    return class_code


class AccountService:
    def __init__(
        self,
        license_registry: Optional[LicenseRegistry] = None,
        media_service: Optional[MediaService] = None,
    ):
        self.licenses = license_registry or LicenseRegistry.default()
        self.account_repo = AccountRepository()
        self.media_service = media_service or MediaService()

    def create_account(
        self,
        email: str,
        password_hash: str,
        first_name: str,
        account_type: str,
        license_key: str,
        school_name: str,
        class_codes: Iterable[str] = (),
    ) -> Account:
        """
        Register an account against a license key.

        The license is checked first, then the email, then the quota. The
        email check and the quota-guarded insert run under one write lock, so
        concurrent registrations on the same key never exceed its limit.

        Raises:
            InvalidLicenseKeyError: If the key is unknown or not valid for the account type
            DuplicateEmailError: If the email is already registered
            QuotaExceededError: If the key has no account slots left
        """
        logger.info(f"Attempting to register account: {email} [account_type={account_type}]")

        limit = self.licenses.limit_for(license_key)
        if limit is None or not limit.allows(account_type):
            logger.warning(f"Registration failed: license key not valid for {account_type} [email={email}]")
            raise InvalidLicenseKeyError("Invalid license key for the selected account type.")

        account = Account(
            account_id=generate_uuid(),
            email=email,
            password_hash=password_hash,
            first_name=first_name,
            account_type=AccountType(account_type),
            school_name=school_name,
            license_key=license_key,
            created_at=get_current_time(),
            class_codes={code.strip() for code in class_codes if code and code.strip()},
        )

        try:
            with transaction(immediate=True) as conn:
                if self.account_repo.email_exists(email, conn=conn):
                    logger.warning(f"Registration failed: email '{email}' already in use")
                    raise DuplicateEmailError("Email already in use")

                if not self.account_repo.insert_within_quota(account, limit.max_accounts, conn):
                    logger.warning(
                        f"Registration failed: license key limit of {limit.max_accounts} reached [email={email}]"
                    )
                    raise QuotaExceededError(
                        "License key limit reached. No more accounts can be registered with this key."
                    )
        except sqlite3.IntegrityError:
            logger.warning(f"Registration failed due to integrity error: email '{email}'")
            raise DuplicateEmailError("Email already in use")

        logger.info(f"Successfully registered account: {email} [account_id={account.account_id}]")
        return account

    def find_by_email(self, email: str) -> Optional[Account]:
        return self.account_repo.get_by_email(email)

    def get_account(self, email: str) -> Account:
        account = self.account_repo.get_by_email(email)
        if account is None:
            raise AccountNotFoundError("User not found")
        return account

    def authenticate(
        self,
        email: str,
        password: str,
        verify: Callable[[str, str], bool] = verify_password,
    ) -> Account:
        """
        Check sign-in credentials. An unknown email and a wrong password fail
        with the same message.
        """
        logger.info(f"Sign-in attempt for: {email}")
        account = self.account_repo.get_by_email(email)
        if account is None:
            logger.warning(f"Sign-in failed: no account for '{email}'")
            raise InvalidCredentialsError(INVALID_CREDENTIALS_MESSAGE)

        if not verify(password, account.password_hash):
            logger.warning(f"Sign-in failed: wrong password for '{email}'")
            raise InvalidCredentialsError(INVALID_CREDENTIALS_MESSAGE)

        logger.info(f"Successfully signed in: {email} [account_id={account.account_id}]")
        return account

    def add_class_code(self, email: str, class_code: str) -> Account:
        """
        Add a class code to an account. Adding a code it already holds is a no-op.
        """
        class_code = _clean_class_code(class_code)
        with transaction() as conn:
            if not self.account_repo.email_exists(email, conn=conn):
                raise AccountNotFoundError("User not found")
            added = self.account_repo.add_class_codes(email, [class_code], conn=conn)

        if added:
            logger.info(f"Added class code {class_code} to {email}")
        else:
            logger.debug(f"Class code {class_code} already held by {email}")
        return self.get_account(email)

    def remove_class_code(self, email: str, class_code: str) -> Account:
        class_code = _clean_class_code(class_code)
        with transaction() as conn:
            if not self.account_repo.email_exists(email, conn=conn):
                raise AccountNotFoundError("User not found")
            if not self.account_repo.remove_class_code(email, class_code, conn=conn):
                raise NotMemberError(f"Not a member of class {class_code}")

        logger.info(f"Removed class code {class_code} from {email}")
        return self.get_account(email)

    def delete_account(self, email: str) -> int:
        """
        Delete an account together with every video it owns.

        Returns:
            Number of videos removed with the account
        """
        with transaction(immediate=True) as conn:
            if not self.account_repo.delete_account(email, conn=conn):
                raise AccountNotFoundError("User not found")
            removed_videos = self.media_service.delete_all_for_owner(email, conn=conn)

        logger.info(f"Deleted account {email} and {len(removed_videos)} videos")
        return len(removed_videos)

    def count_for_license(self, license_key: str) -> int:
        return self.account_repo.count_by_license_key(license_key)
