import sys

from fixed_point import format_amount

DEPOSIT = "deposit"
WITHDRAWAL = "withdrawal"
DISPUTE = "dispute"
RESOLVE = "resolve"
CHARGEBACK = "chargeback"

TRANSACTION_TYPES = (DEPOSIT, WITHDRAWAL, DISPUTE, RESOLVE, CHARGEBACK)


class Account:
    __slots__ = ("available", "held", "locked")

    def __init__(self):
        self.available = 0
        self.held = 0
        self.locked = False

    @property
    def total(self):
        return self.available + self.held


class DepositRecord:
    __slots__ = ("client", "amount")

    def __init__(self, client, amount):
        self.client = client
        self.amount = amount


class Transaction:
    __slots__ = ("type", "client", "amount")

    def __init__(self, record_type, client, amount=0):
        if record_type not in TRANSACTION_TYPES:
            raise ValueError(f"unknown transaction type {record_type!r}")
        self.type = record_type
        self.client = client
        self.amount = amount


class Outcome:
    __slots__ = ("tx_id", "transaction", "reason")

    def __init__(self, tx_id, transaction, reason=None):
        self.tx_id = tx_id
        self.transaction = transaction
        self.reason = reason

    @property
    def applied(self):
        return self.reason is None

    def __bool__(self):
        return self.applied

    def __repr__(self):
        status = "applied" if self.applied else f"rejected: {self.reason}"
        return f"Outcome(tx_id={self.tx_id}, {status})"


class Ledger:
    """Replays transactions against client accounts, one at a time and in input order.

    Owns three pieces of state: accounts by client id, every deposit ever made by tx id, and
    the set of tx ids whose deposit is currently under dispute. Invalid operations never raise,
    they leave state untouched, get logged to stderr and come back as a rejected Outcome.
    """

    def __init__(self, strict_client_match=False):
        self.strict_client_match = strict_client_match
        self.accounts = {}
        self.deposits = {}
        self.disputes = set()
        self.rejections = []

    def get_client_record(self, client_id):
        if client_id not in self.accounts:
            self.accounts[client_id] = Account()
        return self.accounts[client_id]

    def apply(self, tx_id, transaction):
        if transaction.type == DEPOSIT:
            reason = self.process_deposit(tx_id, transaction)
        elif transaction.type == WITHDRAWAL:
            reason = self.process_withdrawal(tx_id, transaction)
        elif transaction.type == DISPUTE:
            reason = self.process_dispute(tx_id, transaction)
        elif transaction.type == RESOLVE:
            reason = self.process_resolve(tx_id, transaction)
        else:
            reason = self.process_chargeback(tx_id, transaction)

        # a client showing up in any transaction is proof enough that they have an account
        self.get_client_record(transaction.client)

        outcome = Outcome(tx_id, transaction, reason)
        if reason is not None:
            self.rejections.append(outcome)
            self.error_log(outcome)
        return outcome

    def apply_all(self, transactions):
        for tx_id, transaction in transactions:
            self.apply(tx_id, transaction)
        return self.accounts

    def process_deposit(self, tx_id, transaction):
        client_accounting = self.get_client_record(transaction.client)
        client_accounting.available += transaction.amount
        # a repeated tx id replaces the earlier record, later disputes see the newest deposit
        self.deposits[tx_id] = DepositRecord(transaction.client, transaction.amount)
        return None

    def process_withdrawal(self, tx_id, transaction):
        client_accounting = self.get_client_record(transaction.client)
        if client_accounting.locked:
            return "account is locked"

        if client_accounting.available < transaction.amount:
            return "insufficient funds"

        client_accounting.available -= transaction.amount
        return None

    def process_dispute(self, tx_id, transaction):
        if tx_id in self.disputes:
            return "tx is already disputed"

        deposit = self.deposits.get(tx_id)
        if deposit is None:
            return "tx not found"

        if self.client_mismatch(deposit, transaction):
            return "tx client_id mismatch"

        client_accounting = self.get_client_record(deposit.client)
        client_accounting.available -= deposit.amount
        client_accounting.held += deposit.amount
        self.disputes.add(tx_id)
        return None

    def process_resolve(self, tx_id, transaction):
        if tx_id not in self.disputes:
            return "tx is not disputed"

        deposit = self.deposits[tx_id]
        if self.client_mismatch(deposit, transaction):
            return "tx client_id mismatch"

        client_accounting = self.get_client_record(deposit.client)
        client_accounting.held -= deposit.amount
        client_accounting.available += deposit.amount
        self.disputes.remove(tx_id)
        return None

    def process_chargeback(self, tx_id, transaction):
        if tx_id not in self.disputes:
            return "tx is not disputed"

        deposit = self.deposits[tx_id]
        if self.client_mismatch(deposit, transaction):
            return "tx client_id mismatch"

        client_accounting = self.get_client_record(deposit.client)
        client_accounting.held -= deposit.amount
        client_accounting.locked = True
        self.disputes.remove(tx_id)
        return None

    def client_mismatch(self, deposit, transaction):
        return self.strict_client_match and deposit.client != transaction.client

    def error_log(self, outcome):
        transaction = outcome.transaction
        amount_detail = ""
        if transaction.type in (DEPOSIT, WITHDRAWAL):
            amount_detail = f" of ${format_amount(transaction.amount)}"
        print(f"tx_id {outcome.tx_id}, client_id {transaction.client}, failed to apply {transaction.type}"
              f"{amount_detail}: {outcome.reason}", file=sys.stderr)
