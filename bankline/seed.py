"""
Development seeding: creates a test account with an opening balance.
"""

from typing import Optional

from .accounts import Account, AccountManager
from .currency import Amount, format_minor_units
from .logging_config import get_logger


logger = get_logger("bankline.seed")


def seed_account(manager: AccountManager, first_name: str, last_name: str,
                 initial_balance: Amount) -> Account:
    """Create an account and credit it with ``initial_balance`` major units"""
    account = manager.create_account(first_name, last_name)
    logger.info(f"New account created - number: {account.number}")
    
    account = manager.seed_balance(account.number, initial_balance)
    logger.info(
        f"Account balance after seeding: {format_minor_units(account.balance, manager.currency)}"
    )
    return account


def seed_accounts(manager: AccountManager, initial_balance: Optional[Amount] = None) -> Account:
    """Seed the default transfer test account"""
    if initial_balance is None:
        from .config import get_config
        initial_balance = get_config().seed_initial_balance
    return seed_account(manager, "Transfer", "Test", initial_balance)
