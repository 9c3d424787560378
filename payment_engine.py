import argparse
import csv
import sys

from fixed_point import format_amount, parse_amount
from ledger import DEPOSIT, WITHDRAWAL, TRANSACTION_TYPES, Ledger, Transaction

REPORT_FIELDS = ["client", "available", "held", "total", "locked"]


def write_report(accounts, out):
    csvwriter = csv.writer(out, lineterminator="\n")
    csvwriter.writerow(REPORT_FIELDS)
    for client_id, account in accounts.items():
        csvwriter.writerow([
            client_id,
            format_amount(account.available),
            format_amount(account.held),
            format_amount(account.total),
            str(account.locked).lower(),
        ])


class PaymentEngine:
    MAX_CLIENT_ID = 65535
    MAX_TX_ID = 4294967295
    DEFAULT_FIELD_ORDER = ("type", "client", "tx", "amount")

    def __init__(self, filename, strict_client_match=False):
        self.filename = filename
        self.ledger = Ledger(strict_client_match=strict_client_match)
        self.dropped_rows = 0
        self.discover_field_order(self.DEFAULT_FIELD_ORDER)

    @property
    def account_totals(self):
        return self.ledger.accounts

    def discover_field_order(self, header):
        names = [name.strip().lower() for name in header]
        self.field_count = len(names)
        self.type_field_idx = names.index("type")
        self.client_field_idx = names.index("client")
        self.tx_field_idx = names.index("tx")
        # amount only matters for deposits and withdrawals, a header may leave it out
        self.amount_field_idx = names.index("amount") if "amount" in names else None

    def looks_like_header(self, record):
        names = {field.strip().lower() for field in record}
        return {"type", "client", "tx"} <= names

    def read_transaction_data(self):
        if not self.filename:
            raise RuntimeError("no filename to read has been set. aborting.")
        self.ledger.apply_all(self.iter_transactions())
        return self.account_totals

    def iter_transactions(self):
        # undecodable bytes become U+FFFD and fail validation in their own row
        with open(self.filename, newline="", encoding="utf-8-sig", errors="replace") as file:
            records = self.iter_records(csv.reader(file))
            first = next(records, None)
            if first is None:
                return
            if self.looks_like_header(first):
                self.discover_field_order(first)
            else:
                # no header, assume the default field order and treat the row as data
                self.discover_field_order(self.DEFAULT_FIELD_ORDER)
                parsed = self.attempt_parse_record(first)
                if parsed is not None:
                    yield parsed

            for record in records:
                parsed = self.attempt_parse_record(record)
                if parsed is not None:
                    yield parsed

    def iter_records(self, csvreader):
        while True:
            try:
                record = next(csvreader)
            except StopIteration:
                return
            except csv.Error as e:
                # the reader drops the rest of the offending line, so carry on with the next one
                self.dropped_rows += 1
                self.error_log(f"{e} while attempting to read line {csvreader.line_num}")
                continue
            yield record

    def process_record(self, record):
        parsed = self.attempt_parse_record(record)
        if parsed is None:
            return None
        return self.ledger.apply(*parsed)

    def attempt_parse_record(self, record):
        if not record or not any(field.strip() for field in record):
            return None
        try:
            return self.parse_record(record)
        except (ValueError, IndexError) as e:
            self.dropped_rows += 1
            self.error_log(f"{e} while attempting to parse row like: {record!r}")
            return None

    def parse_record(self, record):
        if len(record) > self.field_count:
            raise ValueError("extra columns")

        record_type = self.get_field(record, self.type_field_idx).lower()
        if record_type not in TRANSACTION_TYPES:
            raise ValueError(f"invalid record_type {record_type!r}")

        client_id = self.parse_id(self.get_field(record, self.client_field_idx), "client_id", self.MAX_CLIENT_ID)
        tx_id = self.parse_id(self.get_field(record, self.tx_field_idx), "tx_id", self.MAX_TX_ID)

        amount = 0
        if record_type in (DEPOSIT, WITHDRAWAL):
            if self.amount_field_idx is None:
                raise ValueError("missing columns")
            amount = parse_amount(self.get_field(record, self.amount_field_idx))

        return tx_id, Transaction(record_type, client_id, amount)

    def get_field(self, record, idx):
        if idx >= len(record):
            raise IndexError("missing columns")
        return record[idx].strip()

    def parse_id(self, text, name, upper_bound):
        # int() alone would also take signs, underscores and non-ascii digits
        if not (text.isascii() and text.isdigit()):
            raise ValueError(f"invalid {name} {text!r}")
        value = int(text)
        if value > upper_bound:
            raise ValueError(f"invalid {name} {value}")
        return value

    def error_log(self, message):
        print(f"transaction error: {message}", file=sys.stderr)

    def get_account_totals(self):
        return self.read_transaction_data()

    def generate_output(self, out=None):
        self.read_transaction_data()
        write_report(self.account_totals, out if out is not None else sys.stdout)


def build_parser():
    parser = argparse.ArgumentParser(
        prog="payment-engine",
        description="Replay a CSV log of transactions and print the final client balances as CSV.",
    )
    parser.add_argument("transactions_file", help="CSV file with columns type,client,tx,amount")
    return parser


def main(argv=None):
    parser = build_parser()
    args = parser.parse_args(argv)
    engine = PaymentEngine(args.transactions_file)
    try:
        engine.generate_output()
    except OSError as e:
        parser.error(f"cannot read transactions file {args.transactions_file!r}: {e.strerror or e}")
    return 0


if __name__ == "__main__":
    sys.exit(main())
