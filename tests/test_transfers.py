"""
Test suite for the transfer engine

Covers conservation, atomicity, non-negative balances, self-transfer and
amount validation, error mapping for every store failure point, and
concurrent transfers against a shared store.
"""

import pytest
import tempfile
from concurrent.futures import ThreadPoolExecutor
from decimal import Decimal
from pathlib import Path

from bankline.accounts import Account
from bankline.storage import (
    InMemoryLedgerStore, InMemoryTransaction, SQLiteLedgerStore, StorageError
)
from bankline.transfers import (
    TransferEngine, TransferRequest, Receipt, TransferSide, TransferError,
    InvalidAmountError, AccountNotFoundError, SelfTransferError,
    InsufficientFundsError, DebitFailedError, CreditFailedError,
    CommitFailedError, StoreUnavailableError
)


def open_account(store, number, balance):
    return store.create_account(Account(
        first_name="Holder", last_name=str(number), number=number, balance=balance
    ))


def balance_of(store, number):
    return store.get_account_by_number(number).balance


@pytest.fixture(params=["memory", "sqlite"])
def store(request):
    if request.param == "memory":
        backend = InMemoryLedgerStore()
    else:
        backend = SQLiteLedgerStore(":memory:")
    open_account(backend, 1001, 100000)
    open_account(backend, 1002, 5000)
    yield backend
    backend.close()


@pytest.fixture
def engine(store):
    return TransferEngine(store)


class CountingStore(InMemoryLedgerStore):
    """Records account lookups"""

    def __init__(self):
        super().__init__()
        self.lookups = 0

    def get_account_by_number(self, number):
        self.lookups += 1
        return super().get_account_by_number(number)


class FailingCreditStore(InMemoryLedgerStore):
    """Fails every positive balance update made inside a transaction"""

    def update_balance(self, account_id, delta, tx=None):
        if tx is not None and delta > 0:
            raise StorageError("connection reset")
        super().update_balance(account_id, delta, tx)


class FailingDebitStore(InMemoryLedgerStore):
    """Fails every negative balance update made inside a transaction"""

    def update_balance(self, account_id, delta, tx=None):
        if tx is not None and delta < 0:
            raise StorageError("connection reset")
        super().update_balance(account_id, delta, tx)


class DeletesDestinationStore(InMemoryLedgerStore):
    """Deletes the credited account just before the credit executes"""

    def update_balance(self, account_id, delta, tx=None):
        if tx is not None and delta > 0:
            self.delete_account(account_id)
        super().update_balance(account_id, delta, tx)


class FailingCommitTransaction(InMemoryTransaction):
    def commit(self):
        raise StorageError("server closed the connection")


class FailingCommitStore(InMemoryLedgerStore):
    def begin_transaction(self):
        return FailingCommitTransaction(self)


class FailingRollbackTransaction(InMemoryTransaction):
    rollback_calls = 0

    def rollback(self):
        FailingRollbackTransaction.rollback_calls += 1
        self._staged = []
        self._closed = True
        raise StorageError("server closed the connection")


class FailingRollbackStore(FailingCreditStore):
    def begin_transaction(self):
        return FailingRollbackTransaction(self)


class UnavailableBeginStore(InMemoryLedgerStore):
    def begin_transaction(self):
        raise StorageError("could not connect to server")


class UnavailableLookupStore(InMemoryLedgerStore):
    def get_account_by_number(self, number):
        raise StorageError("could not connect to server")


def seeded(store_cls):
    store = store_cls()
    open_account(store, 1001, 100000)
    open_account(store, 1002, 5000)
    return store


class TestSuccessfulTransfer:
    """Transfers that commit"""

    def test_example_scenario(self, store, engine):
        """250.00 from 1001 to 1002 moves 25000 minor units"""
        receipt = engine.execute(TransferRequest(1001, 1002, 250.00))

        assert balance_of(store, 1001) == 75000
        assert balance_of(store, 1002) == 30000

        assert isinstance(receipt, Receipt)
        assert receipt.status == "success"
        assert receipt.from_account == 1001
        assert receipt.to_account == 1002
        assert receipt.amount == Decimal("250.00")
        assert receipt.amount_minor == 25000
        assert receipt.timestamp.tzinfo is not None

        data = receipt.to_dict()
        assert data["status"] == "success"
        assert data["fromAccount"] == 1001
        assert data["toAccount"] == 1002
        assert data["amount"] == 250.00
        assert "timestamp" in data

    @pytest.mark.parametrize("amount,minor", [
        (Decimal("0.01"), 1),
        ("19.99", 1999),
        (0.29, 29),
        (7, 700),
        (Decimal("12.349"), 1234),
    ])
    def test_conservation(self, store, engine, amount, minor):
        """Source loses exactly what destination gains"""
        before_from = balance_of(store, 1001)
        before_to = balance_of(store, 1002)

        receipt = engine.execute(TransferRequest(1001, 1002, amount))

        after_from = balance_of(store, 1001)
        after_to = balance_of(store, 1002)
        assert receipt.amount_minor == minor
        assert after_from == before_from - minor
        assert after_to == before_to + minor
        assert after_from + after_to == before_from + before_to

    def test_entire_balance_can_be_moved(self, store, engine):
        engine.execute(TransferRequest(1002, 1001, "50.00"))
        assert balance_of(store, 1002) == 0
        assert balance_of(store, 1001) == 105000


class TestValidation:
    """Rejections that happen before any transaction opens"""

    @pytest.mark.parametrize("amount", [0, -5, "-0.01", Decimal("0.001"), "abc", float("nan")])
    def test_non_positive_or_invalid_amount_rejected_before_lookup(self, amount):
        """Invalid amounts never reach the store"""
        store = CountingStore()
        open_account(store, 1001, 100000)
        open_account(store, 1002, 5000)
        engine = TransferEngine(store)

        with pytest.raises(InvalidAmountError):
            engine.execute(TransferRequest(1001, 1002, amount))
        assert store.lookups == 0

    @pytest.mark.parametrize("amount", ["1e999999", Decimal("1e30"), 2 ** 64])
    def test_out_of_range_amount_rejected_before_lookup(self, amount):
        """Amounts that do not fit a 64-bit minor-unit balance are invalid"""
        store = CountingStore()
        open_account(store, 1001, 100000)
        open_account(store, 1002, 5000)
        engine = TransferEngine(store)

        with pytest.raises(InvalidAmountError) as exc_info:
            engine.execute(TransferRequest(1001, 1002, amount))
        assert str(exc_info.value) == "transfer amount is out of range"
        assert store.lookups == 0

    def test_out_of_range_account_number_is_not_found(self, store, engine):
        """A number no account can have is reported as unknown, not as a store fault"""
        with pytest.raises(AccountNotFoundError) as exc_info:
            engine.execute(TransferRequest(2 ** 70, 1002, "1.00"))
        assert exc_info.value.side == TransferSide.SOURCE

        with pytest.raises(AccountNotFoundError) as exc_info:
            engine.execute(TransferRequest(1001, 2 ** 70, "1.00"))
        assert exc_info.value.side == TransferSide.DESTINATION
        assert balance_of(store, 1001) == 100000

    def test_unknown_source(self, store, engine):
        with pytest.raises(AccountNotFoundError) as exc_info:
            engine.execute(TransferRequest(9999, 1002, 1))
        assert exc_info.value.side == TransferSide.SOURCE
        assert str(exc_info.value) == "source account 9999 not found"

    def test_unknown_destination(self, store, engine):
        with pytest.raises(AccountNotFoundError) as exc_info:
            engine.execute(TransferRequest(1001, 9999, 1))
        assert exc_info.value.side == TransferSide.DESTINATION
        assert balance_of(store, 1001) == 100000

    def test_self_transfer_rejected_regardless_of_amount(self, store, engine):
        """Same source and destination fails even when funds are short"""
        for amount in ("1.00", "1000000.00"):
            with pytest.raises(SelfTransferError):
                engine.execute(TransferRequest(1001, 1001, amount))
        assert balance_of(store, 1001) == 100000

    def test_insufficient_funds(self, store, engine):
        """Asking for more than the balance changes nothing"""
        with pytest.raises(InsufficientFundsError):
            engine.execute(TransferRequest(1002, 1001, "50.01"))
        assert balance_of(store, 1001) == 100000
        assert balance_of(store, 1002) == 5000

    def test_insufficient_funds_compares_minor_units(self, store, engine):
        """A 5000-cent balance cannot cover a 100.00 request"""
        with pytest.raises(InsufficientFundsError):
            engine.execute(TransferRequest(1002, 1001, 100))
        assert balance_of(store, 1002) == 5000

    def test_failed_validation_is_repeatable(self, store, engine):
        """The same rejected request fails the same way twice"""
        request = TransferRequest(1002, 1001, "60.00")
        errors = []
        for _ in range(2):
            with pytest.raises(InsufficientFundsError) as exc_info:
                engine.execute(request)
            errors.append(str(exc_info.value))

        assert errors[0] == errors[1]
        assert balance_of(store, 1001) == 100000
        assert balance_of(store, 1002) == 5000


class TestExecutionFailures:
    """Failures after the transaction opened roll everything back"""

    def test_credit_failure_undoes_debit(self):
        store = seeded(FailingCreditStore)
        with pytest.raises(CreditFailedError) as exc_info:
            TransferEngine(store).execute(TransferRequest(1001, 1002, "250.00"))

        assert balance_of(store, 1001) == 100000
        assert balance_of(store, 1002) == 5000
        assert "1002" in str(exc_info.value)
        assert isinstance(exc_info.value.__cause__, StorageError)

    def test_destination_deleted_mid_transfer(self):
        """Source is unchanged when the credit target vanishes"""
        store = seeded(DeletesDestinationStore)
        with pytest.raises(CreditFailedError):
            TransferEngine(store).execute(TransferRequest(1001, 1002, "250.00"))

        assert balance_of(store, 1001) == 100000
        assert store.get_account_by_number(1002) is None

    def test_debit_failure(self):
        store = seeded(FailingDebitStore)
        with pytest.raises(DebitFailedError) as exc_info:
            TransferEngine(store).execute(TransferRequest(1001, 1002, "250.00"))

        assert str(exc_info.value) == "failed to deduct from source account 1001"
        assert balance_of(store, 1001) == 100000
        assert balance_of(store, 1002) == 5000

    def test_commit_failure(self):
        store = seeded(FailingCommitStore)
        with pytest.raises(CommitFailedError):
            TransferEngine(store).execute(TransferRequest(1001, 1002, "250.00"))

        assert balance_of(store, 1001) == 100000
        assert balance_of(store, 1002) == 5000

    def test_rollback_failure_does_not_mask_original_error(self):
        """The caller sees the credit failure, not the failed cleanup"""
        FailingRollbackTransaction.rollback_calls = 0
        store = seeded(FailingRollbackStore)

        with pytest.raises(CreditFailedError):
            TransferEngine(store).execute(TransferRequest(1001, 1002, "250.00"))
        assert FailingRollbackTransaction.rollback_calls == 1
        assert balance_of(store, 1001) == 100000

    def test_begin_failure_is_store_unavailable(self):
        store = seeded(UnavailableBeginStore)
        with pytest.raises(StoreUnavailableError):
            TransferEngine(store).execute(TransferRequest(1001, 1002, "1.00"))

    def test_lookup_failure_is_store_unavailable(self):
        store = UnavailableLookupStore()
        with pytest.raises(StoreUnavailableError):
            TransferEngine(store).execute(TransferRequest(1001, 1002, "1.00"))

    def test_every_error_is_a_transfer_error(self):
        """Callers can catch a single base class"""
        for error_cls in (InvalidAmountError, AccountNotFoundError, SelfTransferError,
                          InsufficientFundsError, DebitFailedError, CreditFailedError,
                          CommitFailedError, StoreUnavailableError):
            assert issubclass(error_cls, TransferError)
            assert error_cls.code != TransferError.code


class TestConcurrentTransfers:
    """Many workers sharing one store"""

    def _drain(self, store):
        open_account(store, 2001, 5000)
        open_account(store, 2002, 0)
        engine = TransferEngine(store)

        def attempt(_):
            try:
                engine.execute(TransferRequest(2001, 2002, "10.00"))
                return True
            except (InsufficientFundsError, DebitFailedError, CommitFailedError):
                return False

        with ThreadPoolExecutor(max_workers=8) as pool:
            results = list(pool.map(attempt, range(20)))

        assert results.count(True) == 5
        assert balance_of(store, 2001) == 0
        assert balance_of(store, 2002) == 5000

    def test_concurrent_drain_in_memory(self):
        """Only as many transfers succeed as the balance covers"""
        self._drain(InMemoryLedgerStore())

    def test_concurrent_drain_sqlite(self):
        with tempfile.TemporaryDirectory() as temp_dir:
            store = SQLiteLedgerStore(Path(temp_dir) / "ledger.db")
            try:
                self._drain(store)
            finally:
                store.close()

    def test_back_and_forth_conserves_total(self, store):
        engine = TransferEngine(store)
        total_before = balance_of(store, 1001) + balance_of(store, 1002)

        def shuttle(i):
            if i % 2:
                return engine.execute(TransferRequest(1001, 1002, "3.00"))
            return engine.execute(TransferRequest(1002, 1001, "1.00"))

        with ThreadPoolExecutor(max_workers=6) as pool:
            list(pool.map(shuttle, range(40)))

        assert balance_of(store, 1001) == 100000 - 20 * 300 + 20 * 100
        assert balance_of(store, 1001) + balance_of(store, 1002) == total_before
