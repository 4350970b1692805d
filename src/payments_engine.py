import csv
import logging
from decimal import Decimal, InvalidOperation
from typing import Dict, Iterable, Iterator, Optional, Sequence

from models import (
    AMOUNT_MAX_DIGITS,
    CLIENT_ID_MAX,
    TRANSACTION_ID_MAX,
    ClientAccount,
    ProcessingStats,
    Transaction,
    TransactionType,
)
from state_manager import StateManager
from transaction_processor import TransactionProcessor

logger = logging.getLogger(__name__)


class PaymentsEngine:
    """
    Replays a CSV transaction log into client accounts.
    The source is read twice: once to find disputed ids, once to apply.
    """

    def __init__(self, state: Optional[StateManager] = None):
        self._processor = TransactionProcessor(state)

    @property
    def stats(self) -> ProcessingStats:
        return self._processor.stats

    def process_file(self, filepath: str) -> Dict[int, ClientAccount]:
        """Process CSV file and return final account states."""

        # Pass 1: collect disputed transaction ids over the whole file
        logger.info(f"Scanning {filepath} for disputes")
        for transaction in self.read_transactions(filepath):
            self._processor.preprocess(transaction)

        # Pass 2: reopen and apply
        logger.info(f"Applying transactions from {filepath}")
        for transaction in self.read_transactions(filepath, stats=self.stats):
            self._processor.process(transaction)

        return self._processor.finalize()

    def process_transactions(self, transactions: Sequence[Transaction]) -> Dict[int, ClientAccount]:
        """Process an already buffered transaction stream and return final account states."""
        for transaction in transactions:
            self._processor.preprocess(transaction)
        for transaction in transactions:
            self._processor.process(transaction)
        return self._processor.finalize()

    def read_transactions(self, filepath: str, stats: Optional[ProcessingStats] = None) -> Iterator[Transaction]:
        """Yield parsed transactions from a CSV file, dropping rows that don't parse."""
        with open(filepath, "r", newline="") as f:
            yield from self.parse_csv_rows(csv.DictReader(f), stats)

    def parse_csv_rows(self, rows: Iterable[Dict[str, str]], stats: Optional[ProcessingStats] = None) -> Iterator[Transaction]:
        for row in rows:
            transaction = self.parse_csv_row(row)
            if transaction is not None:
                yield transaction
            elif stats is not None:
                stats.record_skipped()

    def parse_csv_row(self, row: Dict[str, str]) -> Optional[Transaction]:
        """Parse CSV row into Transaction. Returns None for rows that can't be parsed."""
        try:
            # csv.DictReader files surplus values under None and pads short rows with None
            normalized = {
                k.strip(): v.strip()
                for k, v in row.items()
                if isinstance(k, str) and isinstance(v, str)
            }

            transaction_type_str = normalized["type"].lower()
            client_id = _parse_id(normalized["client"], CLIENT_ID_MAX)
            transaction_id = _parse_id(normalized["tx"], TRANSACTION_ID_MAX)

            amount = None
            amount_str = normalized.get("amount", "")
            if amount_str:
                amount = _parse_amount(amount_str)

            return Transaction(
                transaction_type=TransactionType(transaction_type_str),
                client_id=client_id,
                transaction_id=transaction_id,
                amount=amount,
            )
        except (KeyError, ValueError, InvalidOperation) as e:
            logger.debug(f"Failed to parse row {row}: {e!r}")
            return None


def _parse_amount(value: str) -> Decimal:
    amount = Decimal(value)
    if not amount.is_finite():
        raise ValueError(f"amount {value!r} is not a finite number")
    if amount.adjusted() >= AMOUNT_MAX_DIGITS or amount.as_tuple().exponent < -AMOUNT_MAX_DIGITS:
        raise ValueError(f"amount {value!r} is out of range")
    return amount


def _parse_id(value: str, maximum: int) -> int:
    if not (value.isascii() and value.isdigit()):
        raise ValueError(f"{value!r} is not an unsigned integer")
    parsed = int(value)
    if not 0 <= parsed <= maximum:
        raise ValueError(f"{value} is outside 0..{maximum}")
    return parsed
