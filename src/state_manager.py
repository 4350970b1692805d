from typing import Dict, Mapping, Set

from models import Transaction, ClientAccount


class StateManager:
    """
    State for a single run: client accounts, the ids of every transaction
    named by a dispute, and the bodies of disputed deposits/withdrawals kept
    for later dispute lookups.
    """

    def __init__(self):
        self._accounts: Dict[int, ClientAccount] = {}
        self._retained_transactions: Dict[int, Transaction] = {}
        self._disputed_transaction_ids: Set[int] = set()

    def get_or_create_account(self, client_id: int) -> ClientAccount:
        """Get existing account or create new one."""
        if client_id not in self._accounts:
            self._accounts[client_id] = ClientAccount(client_id=client_id)
        return self._accounts[client_id]

    def retain_transaction(self, transaction: Transaction) -> None:
        """Keep transaction for future dispute lookups."""
        self._retained_transactions[transaction.transaction_id] = transaction

    def get_retained_transactions(self) -> Mapping[int, Transaction]:
        return self._retained_transactions

    def mark_transaction_disputed(self, transaction_id: int) -> None:
        """Record that some dispute in the stream names this transaction."""
        self._disputed_transaction_ids.add(transaction_id)

    def is_transaction_disputed(self, transaction_id: int) -> bool:
        return transaction_id in self._disputed_transaction_ids

    def get_all_accounts(self) -> Dict[int, ClientAccount]:
        """Return all accounts (for final output)."""
        return dict(self._accounts)
