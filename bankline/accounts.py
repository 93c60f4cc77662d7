"""
Account Management Module

Account records and the manager that creates, looks up, deletes and seeds
them. Balances only change through the ledger store's balance-update
primitive; this module never writes a balance directly.
"""

from datetime import datetime, timezone
from dataclasses import dataclass, field
from typing import Any, Dict, Optional
import random

from .currency import Currency, Amount, to_minor_units, format_minor_units
from .logging_config import get_logger, log_action

# Upper bound (exclusive) for generated account numbers
ACCOUNT_NUMBER_SPACE = 1_000_000


@dataclass
class Account:
    """
    Bank account as stored in the ledger.

    ``id`` is assigned by the store and stays internal; ``number`` is the
    routable handle transfer requests use. ``balance`` is in minor units.
    """
    first_name: str
    last_name: str
    number: int
    balance: int = 0
    id: Optional[int] = None
    created_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))

    def __post_init__(self):
        if isinstance(self.balance, bool) or not isinstance(self.balance, int):
            raise ValueError("Account balance must be an integer number of minor units")
        if self.balance < 0:
            raise ValueError("Account balance cannot be negative")

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for JSON responses"""
        return {
            "id": self.id,
            "first_name": self.first_name,
            "last_name": self.last_name,
            "account_number": self.number,
            "balance": self.balance,
            "created_at": self.created_at.isoformat(),
        }

    @classmethod
    def from_row(cls, row: Any) -> 'Account':
        """Build an Account from a mapping-like database row"""
        created_at = row["created_at"]
        if isinstance(created_at, str):
            created_at = datetime.fromisoformat(created_at)
        if created_at.tzinfo is None:
            created_at = created_at.replace(tzinfo=timezone.utc)

        return cls(
            id=int(row["id"]),
            first_name=row["first_name"],
            last_name=row["last_name"],
            number=int(row["account_number"]),
            balance=int(row["balance"]),
            created_at=created_at,
        )


def generate_account_number() -> int:
    """Random account number in [0, ACCOUNT_NUMBER_SPACE)"""
    return random.randrange(ACCOUNT_NUMBER_SPACE)


class AccountManager:
    """
    Manages account lifecycle on top of a ledger store
    """

    def __init__(self, store: 'LedgerStore', currency: Currency = Currency.USD,
                 max_number_attempts: int = 10):
        self.store = store
        self.currency = currency
        self.max_number_attempts = max_number_attempts
        self.logger = get_logger("bankline.accounts")

    def create_account(self, first_name: str, last_name: str,
                       number: Optional[int] = None) -> Account:
        """
        Create a new account with a zero balance

        Args:
            first_name: Holder's first name
            last_name: Holder's last name
            number: Specific account number (generated if not provided)

        Returns:
            Stored Account with its id assigned

        Raises:
            ValueError: If names are empty or no free account number was found
            DuplicateAccountNumberError: If an explicit number is taken
        """
        from .storage import DuplicateAccountNumberError

        if not first_name or not first_name.strip():
            raise ValueError("first name is required")
        if not last_name or not last_name.strip():
            raise ValueError("last name is required")

        if number is not None:
            account = self.store.create_account(
                Account(first_name=first_name, last_name=last_name, number=number)
            )
        else:
            account = None
            for _ in range(self.max_number_attempts):
                try:
                    account = self.store.create_account(Account(
                        first_name=first_name,
                        last_name=last_name,
                        number=generate_account_number(),
                    ))
                    break
                except DuplicateAccountNumberError:
                    continue
            if account is None:
                raise ValueError("could not allocate a unique account number")

        log_action(
            self.logger, "info", "Account created",
            action="create_account", resource=f"account:{account.number}",
            extra={"account_number": account.number}
        )
        return account

    def get_account(self, account_id: int) -> Account:
        """Get account by internal id, raising ValueError if absent"""
        account = self.store.get_account_by_id(account_id)
        if account is None:
            raise ValueError(f"account with id {account_id} not found")
        return account

    def get_account_by_number(self, number: int) -> Account:
        """Get account by account number, raising ValueError if absent"""
        account = self.store.get_account_by_number(number)
        if account is None:
            raise ValueError(f"account with number [{number}] not found")
        return account

    def delete_account(self, account_id: int) -> None:
        """Delete an account by internal id"""
        if not self.store.delete_account(account_id):
            raise ValueError(f"account with id {account_id} not found")

        log_action(
            self.logger, "info", "Account deleted",
            action="delete_account", resource=f"account_id:{account_id}"
        )

    def seed_balance(self, number: int, amount: Amount) -> Account:
        """
        Add an opening balance (major units) to an account

        The credit runs inside its own transaction so a failed commit
        leaves the balance untouched.

        Returns:
            The account as re-read after the commit
        """
        minor = to_minor_units(amount, self.currency)
        if minor <= 0:
            raise ValueError("seed amount must be positive")

        account = self.get_account_by_number(number)

        with self.store.begin_transaction() as tx:
            self.store.update_balance(account.id, minor, tx)
            tx.commit()

        updated = self.get_account_by_number(number)
        log_action(
            self.logger, "info", f"Seeded account {number} with {format_minor_units(minor, self.currency)}",
            action="seed_balance", resource=f"account:{number}",
            extra={"amount_minor": minor, "balance": updated.balance}
        )
        return updated
