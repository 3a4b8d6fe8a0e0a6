import sys
import os
import csv
import io
import logging
from decimal import Decimal

import pytest

sys.path.insert(0, os.path.join(os.path.dirname(__file__), "..", "src"))

from csv_io import (
    MalformedRecordError,
    format_decimal,
    iter_transactions,
    parse_csv_row,
    read_transactions,
    write_accounts,
)
from models import AccountSnapshot, ProcessingStats, Transaction, TransactionType


class TestParseCsvRow:
    def test_deposit(self):
        transaction = parse_csv_row({"type": "deposit", " client": " 1", " tx": " 2", " amount": " 3.5"})
        assert transaction == Transaction(TransactionType.DEPOSIT, client_id=1, transaction_id=2, amount=Decimal("3.5"))

    def test_type_is_case_insensitive(self):
        transaction = parse_csv_row({"type": "Withdrawal", "client": "1", "tx": "2", "amount": "1"})
        assert transaction.transaction_type == TransactionType.WITHDRAWAL

    def test_lifecycle_without_amount(self):
        transaction = parse_csv_row({"type": "dispute", "client": "1", "tx": "2", "amount": None})
        assert transaction == Transaction(TransactionType.DISPUTE, client_id=1, transaction_id=2)

    def test_lifecycle_amount_ignored(self):
        transaction = parse_csv_row({"type": "chargeback", "client": "1", "tx": "2", "amount": "7"})
        assert transaction.amount is None

    def test_amount_truncated(self):
        transaction = parse_csv_row({"type": "deposit", "client": "1", "tx": "2", "amount": "0.99999"})
        assert str(transaction.amount) == "0.9999"

    def test_surplus_columns_ignored(self):
        transaction = parse_csv_row({"type": "deposit", "client": "1", "tx": "2", "amount": "1", None: ["x"]})
        assert transaction.amount == Decimal("1")

    @pytest.mark.parametrize("row", [
        {"type": "transfer", "client": "1", "tx": "1", "amount": "1"},
        {"type": "deposit", "client": "one", "tx": "1", "amount": "1"},
        {"type": "deposit", "client": "70000", "tx": "1", "amount": "1"},
        {"type": "deposit", "client": "1", "tx": "-1", "amount": "1"},
        {"type": "deposit", "client": "1", "tx": "1", "amount": ""},
        {"type": "deposit", "client": "1", "tx": "1", "amount": "abc"},
        {"type": "deposit", "client": "1", "tx": "1", "amount": "NaN"},
        {"type": "deposit", "client": "1", "tx": "1", "amount": "-5"},
        {"type": "withdrawal", "client": "1", "tx": "1", "amount": "0.00001"},
        {"type": "deposit", "client": "1", "amount": "1"},
    ])
    def test_malformed(self, row):
        with pytest.raises(MalformedRecordError):
            parse_csv_row(row)


class TestReadTransactions:
    def test_skips_and_counts_malformed_rows(self, caplog):
        stream = io.StringIO("\n".join([
            "type, client, tx, amount",
            "deposit, 1, 1, 1.0",
            "deposit, 1, oops, 1.0",
            "dispute, 1, 1",
        ]))
        stats = ProcessingStats()

        with caplog.at_level(logging.WARNING):
            transactions = list(iter_transactions(stream, stats))

        assert [t.transaction_type for t in transactions] == [TransactionType.DEPOSIT, TransactionType.DISPUTE]
        assert stats.malformed == 1
        assert "line 3" in caplog.text

    def test_reads_file(self, tmp_path):
        csv_file = tmp_path / "input.csv"
        csv_file.write_text("type,client,tx,amount\nwithdrawal,2,9,4.25\n")

        assert list(read_transactions(str(csv_file))) == [
            Transaction(TransactionType.WITHDRAWAL, client_id=2, transaction_id=9, amount=Decimal("4.25")),
        ]

    def test_oversized_field_skipped(self):
        oversized = "9" * (csv.field_size_limit() + 1)
        stream = io.StringIO(f"type,client,tx,amount\ndeposit,1,1,{oversized}\ndeposit,1,2,1.0\n")
        stats = ProcessingStats()

        transactions = list(iter_transactions(stream, stats))

        assert [t.transaction_id for t in transactions] == [2]
        assert stats.malformed == 1

    def test_undecodable_bytes_fail_their_row_only(self, tmp_path):
        csv_file = tmp_path / "input.csv"
        csv_file.write_bytes(b"type,client,tx,amount\ndeposit,1,1,\xff\xfe\ndeposit,1,2,2.5\n")
        stats = ProcessingStats()

        assert list(read_transactions(str(csv_file), stats)) == [
            Transaction(TransactionType.DEPOSIT, client_id=1, transaction_id=2, amount=Decimal("2.5")),
        ]
        assert stats.malformed == 1


class TestWriteAccounts:
    def test_format_decimal(self):
        assert format_decimal(Decimal("1.5000")) == "1.5"
        assert format_decimal(Decimal("100.0000")) == "100"
        assert format_decimal(Decimal("0.0000")) == "0"
        assert format_decimal(Decimal("-30.0000")) == "-30"

    def test_writes_sorted_rows(self):
        accounts = [
            AccountSnapshot(client_id=2, available=Decimal("0.0000"), held=Decimal("5.0000"), total=Decimal("5.0000"), locked=False),
            AccountSnapshot(client_id=1, available=Decimal("7.2500"), held=Decimal("0.0000"), total=Decimal("7.2500"), locked=True),
        ]
        stream = io.StringIO()

        write_accounts(accounts, stream)

        assert stream.getvalue().splitlines() == [
            "client,available,held,total,locked",
            "1,7.25,0,7.25,true",
            "2,0,5,5,false",
        ]
