import logging
from dataclasses import dataclass
from decimal import Context, Decimal, Inexact, MAX_EMAX, MAX_PREC, MIN_EMIN, localcontext
from enum import Enum
from typing import Mapping, Optional

logger = logging.getLogger(__name__)

CLIENT_ID_MAX = 2**16 - 1
TRANSACTION_ID_MAX = 2**32 - 1

# Amounts must fit 28 digits on either side of the decimal point.
AMOUNT_MAX_DIGITS = 28

# Wide enough that adding or subtracting parsed amounts never rounds.
EXACT_CONTEXT = Context(prec=MAX_PREC, Emax=MAX_EMAX, Emin=MIN_EMIN, traps=[Inexact])


class LedgerIntegrityError(Exception):
    """
    Raised when the ledger detects a defect in the engine itself.
    Never caught: a run that raises this has no trustworthy output.
    """


class TransactionType(Enum):
    DEPOSIT = "deposit"
    WITHDRAWAL = "withdrawal"
    DISPUTE = "dispute"
    RESOLVE = "resolve"
    CHARGEBACK = "chargeback"


class ProcessingResult(Enum):
    APPLIED = "applied"
    IGNORED = "ignored"


@dataclass(frozen=True)
class Transaction:
    transaction_type: TransactionType
    client_id: int
    transaction_id: int
    amount: Optional[Decimal] = None

    @property
    def is_disputable(self) -> bool:
        return self.transaction_type in (TransactionType.DEPOSIT, TransactionType.WITHDRAWAL)

    def __repr__(self) -> str:
        return f"Transaction({self.transaction_type.value}, client={self.client_id}, tx={self.transaction_id}, amount={self.amount})"


@dataclass
class ClientAccount:
    client_id: int
    available: Decimal = Decimal("0")
    held: Decimal = Decimal("0")
    total: Decimal = Decimal("0")
    locked: bool = False

    def apply(self, transaction: Transaction, retained_transactions: Mapping[int, Transaction]) -> ProcessingResult:
        """
        Apply one transaction to this account.

        Dispute, resolve and chargeback look up the transaction they refer to in
        retained_transactions. Unknown references, references to another
        client's transaction and deposits/withdrawals without an amount leave
        the account untouched and return IGNORED. Withdrawals are not checked
        against available funds.

        Raises:
            LedgerIntegrityError: the transaction belongs to another client, or
                available + held no longer equals total afterwards.
        """
        if transaction.client_id != self.client_id:
            raise LedgerIntegrityError(
                f"{transaction!r} routed to account of client {self.client_id}"
            )

        with localcontext(EXACT_CONTEXT):
            result = self._dispatch(transaction, retained_transactions)

            if self.available + self.held != self.total:
                raise LedgerIntegrityError(
                    f"Client {self.client_id}: available {self.available} + held {self.held} "
                    f"!= total {self.total} after {transaction!r}"
                )
        return result

    def _dispatch(self, transaction: Transaction, retained_transactions: Mapping[int, Transaction]) -> ProcessingResult:
        match transaction.transaction_type:
            case TransactionType.DEPOSIT:
                amount = transaction.amount
                handler = self.credit
            case TransactionType.WITHDRAWAL:
                amount = transaction.amount
                handler = self.debit
            case TransactionType.DISPUTE:
                amount = referenced_amount(transaction, retained_transactions)
                handler = self.hold
            case TransactionType.RESOLVE:
                amount = referenced_amount(transaction, retained_transactions)
                handler = self.release_hold
            case TransactionType.CHARGEBACK:
                amount = referenced_amount(transaction, retained_transactions)
                handler = self.charge_back

        if amount is None:
            logger.debug(f"{transaction!r}: nothing to apply, ignoring")
            return ProcessingResult.IGNORED

        handler(amount)
        return ProcessingResult.APPLIED

    def credit(self, amount: Decimal) -> None:
        self.available += amount
        self.total += amount

    def debit(self, amount: Decimal) -> None:
        self.available -= amount
        self.total -= amount

    def hold(self, amount: Decimal) -> None:
        self.available -= amount
        self.held += amount

    def release_hold(self, amount: Decimal) -> None:
        self.held -= amount
        self.available += amount

    def charge_back(self, amount: Decimal) -> None:
        self.held -= amount
        self.total -= amount
        self.locked = True


def referenced_amount(transaction: Transaction, retained_transactions: Mapping[int, Transaction]) -> Optional[Decimal]:
    """Amount of the retained transaction this one refers to, or None if it can't be resolved."""
    original = retained_transactions.get(transaction.transaction_id)

    if original is None:
        return None

    if original.client_id != transaction.client_id:
        logger.debug(
            f"{transaction!r}: refers to tx {original.transaction_id} of client {original.client_id}, ignoring"
        )
        return None

    return original.amount


class ProcessingStats:
    """Counters for tracking processing statistics."""

    def __init__(self):
        self.applied = 0
        self.ignored = 0
        self.skipped = 0

    def record(self, result: ProcessingResult):
        if result == ProcessingResult.APPLIED:
            self.applied += 1
        else:
            self.ignored += 1

    def record_skipped(self):
        self.skipped += 1

    def __repr__(self) -> str:
        return f"Applied: {self.applied}, Ignored: {self.ignored}, Skipped: {self.skipped}"
