"""
Service container and FastAPI dependencies
"""

from typing import Optional

from fastapi import Request

from ..accounts import AccountManager
from ..config import BanklineConfig, get_config
from ..currency import Currency
from ..storage import LedgerStore, create_store
from ..transfers import TransferEngine


class BankingSystem:
    """Ledger store, account manager and transfer engine wired together"""
    
    def __init__(self, store: Optional[LedgerStore] = None,
                 config: Optional[BanklineConfig] = None):
        self.config = config or get_config()
        self.currency = Currency[self.config.currency]
        
        if store is None:
            store = create_store(
                self.config.database_url,
                pool_size=self.config.database_pool_size,
                currency=self.currency
            )
        self.store = store
        
        self.account_manager = AccountManager(self.store, self.currency)
        self.transfer_engine = TransferEngine(self.store, self.currency)
    
    def close(self) -> None:
        self.store.close()


def get_banking_system(request: Request) -> BankingSystem:
    """Dependency returning the system attached to the running app"""
    return request.app.state.banking_system
