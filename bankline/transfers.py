"""
Transfer Engine Module

Moves funds between two account balances as a single unit of work: the
source is debited and the destination credited inside one store
transaction, which either commits as a whole or is rolled back.

Errors name account numbers only; internal account ids never leave this
module in a message.
"""

from decimal import Decimal
from datetime import datetime, timezone
from dataclasses import dataclass, field
from typing import Any, Dict
from enum import Enum

from .accounts import Account
from .currency import (
    Currency, Amount, AmountOutOfRangeError, to_minor_units, from_minor_units
)
from .storage import LedgerStore, StorageError
from .logging_config import get_logger, log_action


class TransferSide(Enum):
    """Which end of a transfer an error refers to"""
    SOURCE = "source"
    DESTINATION = "destination"


class TransferError(Exception):
    """Base class for errors reported by the transfer engine"""
    code = "transfer_error"


class InvalidAmountError(TransferError):
    code = "invalid_amount"


class AccountNotFoundError(TransferError):
    code = "account_not_found"

    def __init__(self, side: TransferSide, number: int):
        self.side = side
        self.number = number
        super().__init__(f"{side.value} account {number} not found")


class SelfTransferError(TransferError):
    code = "self_transfer"


class InsufficientFundsError(TransferError):
    code = "insufficient_funds"


class DebitFailedError(TransferError):
    code = "debit_failed"


class CreditFailedError(TransferError):
    code = "credit_failed"


class CommitFailedError(TransferError):
    code = "commit_failed"


class StoreUnavailableError(TransferError):
    code = "store_unavailable"


@dataclass(frozen=True)
class TransferRequest:
    """A request to move ``amount`` (major units) between two account numbers"""
    from_account: int
    to_account: int
    amount: Amount


@dataclass(frozen=True)
class Receipt:
    """Result of a committed transfer"""
    from_account: int
    to_account: int
    amount: Decimal
    amount_minor: int
    timestamp: datetime = field(default_factory=lambda: datetime.now(timezone.utc))
    status: str = "success"

    def to_dict(self) -> Dict[str, Any]:
        """JSON form returned to HTTP callers"""
        return {
            "status": self.status,
            "fromAccount": self.from_account,
            "toAccount": self.to_account,
            "amount": float(self.amount),
            "timestamp": self.timestamp.isoformat(),
        }


class TransferEngine:
    """
    Validates and executes transfers against an injected ledger store.

    Validation has no side effects and opens no transaction. Execution
    re-reads both accounts, then debits and credits inside one transaction
    that is rolled back on every exit path that did not commit.

    There is no engine-level lock: two transfers sharing an account
    serialize on the store's row locks, and the store's non-negative
    balance constraint rejects a debit that a concurrent transfer made
    unaffordable after validation.
    """

    def __init__(self, store: LedgerStore, currency: Currency = Currency.USD):
        self.store = store
        self.currency = currency
        self.logger = get_logger("bankline.transfers")

    def execute(self, request: TransferRequest) -> Receipt:
        """
        Execute a transfer

        Args:
            request: Source number, destination number and major-unit amount

        Returns:
            Receipt, only after the transaction committed

        Raises:
            TransferError: Exactly one subclass per failed call
        """
        try:
            amount_minor = self._validate(request)
            receipt = self._perform(request, amount_minor)
        except TransferError as e:
            log_action(
                self.logger, "warning", f"Transfer rejected: {e}",
                action="transfer", resource=f"account:{request.from_account}",
                extra={
                    "code": e.code,
                    "from_account": request.from_account,
                    "to_account": request.to_account,
                }
            )
            raise

        log_action(
            self.logger, "info", "Transfer completed",
            action="transfer", resource=f"account:{request.from_account}",
            extra={
                "from_account": receipt.from_account,
                "to_account": receipt.to_account,
                "amount_minor": receipt.amount_minor,
            }
        )
        return receipt

    def _amount_in_minor_units(self, amount: Amount) -> int:
        try:
            minor = to_minor_units(amount, self.currency)
        except AmountOutOfRangeError as e:
            raise InvalidAmountError("transfer amount is out of range") from e
        except ValueError as e:
            raise InvalidAmountError("transfer amount must be a number") from e
        if minor <= 0:
            raise InvalidAmountError("transfer amount must be positive")
        return minor

    def _resolve(self, number: int, side: TransferSide) -> Account:
        try:
            account = self.store.get_account_by_number(number)
        except StorageError as e:
            self.logger.error(f"Lookup of {side.value} account {number} failed: {e}")
            raise StoreUnavailableError("account store unavailable") from e
        if account is None:
            raise AccountNotFoundError(side, number)
        return account

    def _validate(self, request: TransferRequest) -> int:
        """Check the request without touching balances; returns the amount in minor units"""
        amount_minor = self._amount_in_minor_units(request.amount)

        from_account = self._resolve(request.from_account, TransferSide.SOURCE)
        to_account = self._resolve(request.to_account, TransferSide.DESTINATION)

        if from_account.number == to_account.number:
            raise SelfTransferError("cannot transfer to the same account")

        # Both sides in minor units
        if from_account.balance < amount_minor:
            raise InsufficientFundsError(
                f"insufficient balance in account {request.from_account}"
            )

        return amount_minor

    def _perform(self, request: TransferRequest, amount_minor: int) -> Receipt:
        # Accounts are re-read so the mutation uses current ids, not the
        # handles resolved during validation.
        from_account = self._resolve(request.from_account, TransferSide.SOURCE)
        to_account = self._resolve(request.to_account, TransferSide.DESTINATION)

        try:
            tx = self.store.begin_transaction()
        except StorageError as e:
            self.logger.error(f"Could not begin transaction: {e}")
            raise StoreUnavailableError("could not begin transaction") from e

        with tx:
            try:
                self.store.update_balance(from_account.id, -amount_minor, tx)
            except StorageError as e:
                self.logger.error(f"Debit of account {request.from_account} failed: {e}")
                raise DebitFailedError(
                    f"failed to deduct from source account {request.from_account}"
                ) from e

            try:
                self.store.update_balance(to_account.id, amount_minor, tx)
            except StorageError as e:
                self.logger.error(f"Credit of account {request.to_account} failed: {e}")
                raise CreditFailedError(
                    f"failed to credit destination account {request.to_account}"
                ) from e

            try:
                tx.commit()
            except StorageError as e:
                self.logger.error(f"Commit of transfer failed: {e}")
                raise CommitFailedError("failed to commit transfer") from e

        return Receipt(
            from_account=request.from_account,
            to_account=request.to_account,
            amount=from_minor_units(amount_minor, self.currency),
            amount_minor=amount_minor,
        )
