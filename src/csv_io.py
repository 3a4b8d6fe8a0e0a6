"""
CSV adapters around the ledger engine.

Input rows look like ``type, client, tx, amount``; output rows like
``client,available,held,total,locked``.
"""
import csv
import logging
from decimal import Decimal, InvalidOperation, ROUND_DOWN
from typing import Dict, Iterable, Iterator, Optional, TextIO

from models import AMOUNT_SCALE, AccountSnapshot, ProcessingStats, Transaction, TransactionType

logger = logging.getLogger(__name__)

MAX_CLIENT_ID = 2**16 - 1
MAX_TRANSACTION_ID = 2**32 - 1

OUTPUT_HEADER = "client,available,held,total,locked"


class MalformedRecordError(ValueError):
    """Raised when an input row cannot be turned into a Transaction."""


def parse_csv_row(row: Dict[Optional[str], Optional[str]]) -> Transaction:
    """Parse CSV row into Transaction."""
    # csv.DictReader puts surplus columns under the None key
    normalized = {k.strip(): (v or "").strip() for k, v in row.items() if k is not None}

    try:
        transaction_type = TransactionType(normalized["type"].lower())
        client_id = _parse_id(normalized["client"], "client", MAX_CLIENT_ID)
        transaction_id = _parse_id(normalized["tx"], "tx", MAX_TRANSACTION_ID)
    except KeyError as e:
        raise MalformedRecordError(f"missing column {e}") from e
    except ValueError as e:
        raise MalformedRecordError(str(e)) from e

    amount = None
    if transaction_type.moves_funds:
        amount = _parse_amount(normalized.get("amount", ""))

    return Transaction(
        transaction_type=transaction_type,
        client_id=client_id,
        transaction_id=transaction_id,
        amount=amount,
    )


def _parse_id(value: str, field: str, maximum: int) -> int:
    parsed = int(value)
    if not 0 <= parsed <= maximum:
        raise MalformedRecordError(f"{field} {parsed} out of range 0..{maximum}")
    return parsed


def _parse_amount(value: str) -> Decimal:
    if not value:
        raise MalformedRecordError("amount is required")
    try:
        amount = Decimal(value)
    except InvalidOperation as e:
        raise MalformedRecordError(f"invalid amount {value!r}") from e
    if not amount.is_finite():
        raise MalformedRecordError(f"invalid amount {value!r}")

    # Anything past the fourth fractional digit is dropped, not rounded.
    amount = amount.quantize(AMOUNT_SCALE, rounding=ROUND_DOWN)
    if amount <= 0:
        raise MalformedRecordError(f"amount must be positive, got {value!r}")
    return amount


def iter_transactions(stream: TextIO, stats: Optional[ProcessingStats] = None) -> Iterator[Transaction]:
    """Yield transactions from an open CSV stream, logging and skipping malformed rows."""
    reader = csv.DictReader(stream)
    while True:
        try:
            row = next(reader)
        except StopIteration:
            return
        except csv.Error as e:
            _skip_row(reader.line_num, e, stats)
            continue

        try:
            yield parse_csv_row(row)
        except MalformedRecordError as e:
            _skip_row(reader.line_num, e, stats)


def _skip_row(line_num: int, error: Exception, stats: Optional[ProcessingStats]) -> None:
    logger.warning(f"Skipping malformed row at line {line_num}: {error}")
    if stats is not None:
        stats.record_malformed()


def read_transactions(filepath: str, stats: Optional[ProcessingStats] = None) -> Iterator[Transaction]:
    """
    Read CSV file and yield its transactions.
    Undecodable bytes become U+FFFD so the row they sit in fails as malformed.
    """
    with open(filepath, "r", newline="", errors="replace") as f:
        yield from iter_transactions(f, stats)


def format_decimal(value: Decimal) -> str:
    """Format decimal with up to 4 decimal places, removing trailing zeros."""
    normalized = value.normalize()
    return f"{normalized:f}"


def write_accounts(accounts: Iterable[AccountSnapshot], stream: TextIO) -> None:
    """Write accounts as CSV, ordered by client id."""
    print(OUTPUT_HEADER, file=stream)
    for account in sorted(accounts, key=lambda a: a.client_id):
        print(
            f"{account.client_id},"
            f"{format_decimal(account.available)},"
            f"{format_decimal(account.held)},"
            f"{format_decimal(account.total)},"
            f"{str(account.locked).lower()}",
            file=stream,
        )
