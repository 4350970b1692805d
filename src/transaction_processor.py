import logging
from typing import Dict, Optional

from models import Transaction, TransactionType, ClientAccount, ProcessingResult, ProcessingStats
from state_manager import StateManager

logger = logging.getLogger(__name__)


class TransactionProcessor:
    """
    Applies a transaction stream to client accounts in two passes.

    Every transaction must go through preprocess() before any of them goes
    through process(), in the same order both times. The first pass collects
    the ids named by disputes, so the second pass only keeps the deposits and
    withdrawals that something will later refer to.
    """

    def __init__(self, state: Optional[StateManager] = None):
        self._state = state if state is not None else StateManager()
        self.stats = ProcessingStats()

    def preprocess(self, transaction: Transaction) -> None:
        if transaction.transaction_type == TransactionType.DISPUTE:
            self._state.mark_transaction_disputed(transaction.transaction_id)

    def process(self, transaction: Transaction) -> ProcessingResult:
        account = self._state.get_or_create_account(transaction.client_id)
        result = account.apply(transaction, self._state.get_retained_transactions())
        self.stats.record(result)

        if transaction.is_disputable and self._state.is_transaction_disputed(transaction.transaction_id):
            self._state.retain_transaction(transaction)

        return result

    def finalize(self) -> Dict[int, ClientAccount]:
        """Return one account per client seen, in no particular order."""
        logger.info(f"Processing complete. {self.stats}")
        return self._state.get_all_accounts()
