"""Account repository for database operations."""

import sqlite3
from dataclasses import dataclass, field
from datetime import datetime
from typing import Iterable, Optional, Set

from common.database import connection_scope
from common.logging_config import get_logger
from common.types import AccountType

logger = get_logger(__name__)


@dataclass
class Account:
    account_id: str
    email: str
    password_hash: str
    first_name: str
    account_type: AccountType
    school_name: str
    license_key: str
    created_at: datetime
    class_codes: Set[str] = field(default_factory=set)


class AccountRepository:
    @staticmethod
    def insert_within_quota(account: Account, max_accounts: int, conn: sqlite3.Connection) -> bool:
        """
        Insert an account only while its license key has fewer than
        ``max_accounts`` accounts. The count and the insert are one statement.

        Returns:
            True if the account was inserted, False if the quota is used up

        Raises:
            sqlite3.IntegrityError: If the email is already registered
        """
        logger.debug(f"Inserting account {account.email} [max_accounts={max_accounts}]")
        cursor = conn.cursor()
        cursor.execute(
            """
            INSERT INTO accounts (account_id, email, password_hash, first_name, account_type,
                                  school_name, license_key, created_at)
            SELECT ?, ?, ?, ?, ?, ?, ?, ?
            WHERE (SELECT COUNT(*) FROM accounts WHERE license_key = ?) < ?
            """,
            (account.account_id, account.email, account.password_hash, account.first_name,
             account.account_type.value, account.school_name, account.license_key,
             account.created_at.isoformat(), account.license_key, max_accounts)
        )
        if cursor.rowcount != 1:
            return False

        AccountRepository.add_class_codes(account.email, account.class_codes, conn=conn)
        return True

    @staticmethod
    def get_by_email(email: str, conn: Optional[sqlite3.Connection] = None) -> Optional[Account]:
        logger.debug(f"Fetching account by email: {email}")
        with connection_scope(conn) as conn:
            cursor = conn.cursor()
            cursor.execute(
                """SELECT account_id, email, password_hash, first_name, account_type,
                          school_name, license_key, created_at
                   FROM accounts WHERE email = ?""",
                (email,)
            )
            row = cursor.fetchone()

            if row is None:
                logger.debug(f"Account not found: {email}")
                return None

            return Account(
                account_id=row["account_id"],
                email=row["email"],
                password_hash=row["password_hash"],
                first_name=row["first_name"],
                account_type=AccountType(row["account_type"]),
                school_name=row["school_name"],
                license_key=row["license_key"],
                created_at=datetime.fromisoformat(row["created_at"]),
                class_codes=AccountRepository.get_class_codes(email, conn=conn),
            )

    @staticmethod
    def email_exists(email: str, conn: Optional[sqlite3.Connection] = None) -> bool:
        with connection_scope(conn) as conn:
            row = conn.execute("SELECT 1 FROM accounts WHERE email = ?", (email,)).fetchone()
            return row is not None

    @staticmethod
    def count_by_license_key(license_key: str, conn: Optional[sqlite3.Connection] = None) -> int:
        with connection_scope(conn) as conn:
            row = conn.execute(
                "SELECT COUNT(*) AS total FROM accounts WHERE license_key = ?",
                (license_key,)
            ).fetchone()
            return row["total"]

    @staticmethod
    def get_class_codes(email: str, conn: Optional[sqlite3.Connection] = None) -> Set[str]:
        with connection_scope(conn) as conn:
            rows = conn.execute(
                "SELECT class_code FROM account_class_codes WHERE email = ?",
                (email,)
            ).fetchall()
            return {row["class_code"] for row in rows}

    @staticmethod
    def add_class_codes(email: str, class_codes: Iterable[str], conn: Optional[sqlite3.Connection] = None) -> int:
        """
        Add class codes to an account; codes it already holds are ignored.

        Returns:
            Number of codes that were new
        """
        added = 0
        with connection_scope(conn) as conn:
            cursor = conn.cursor()
            for class_code in class_codes:
                cursor.execute(
                    "INSERT OR IGNORE INTO account_class_codes (email, class_code) VALUES (?, ?)",
                    (email, class_code)
                )
                added += cursor.rowcount
        return added

    @staticmethod
    def remove_class_code(email: str, class_code: str, conn: Optional[sqlite3.Connection] = None) -> bool:
        with connection_scope(conn) as conn:
            cursor = conn.execute(
                "DELETE FROM account_class_codes WHERE email = ? AND class_code = ?",
                (email, class_code)
            )
            return cursor.rowcount == 1

    @staticmethod
    def delete_account(email: str, conn: Optional[sqlite3.Connection] = None) -> bool:
        logger.debug(f"Deleting account: {email}")
        with connection_scope(conn) as conn:
            conn.execute("DELETE FROM account_class_codes WHERE email = ?", (email,))
            cursor = conn.execute("DELETE FROM accounts WHERE email = ?", (email,))
            return cursor.rowcount == 1
