import sys
import logging

from csv_io import write_accounts
from payments_engine import PaymentsEngine
from settings import SettingsLoadError, load_settings

logger = logging.getLogger(__name__)


def main(argv=None) -> int:
    argv = sys.argv[1:] if argv is None else argv
    if len(argv) != 1:
        print("Usage: python main.py <input.csv>", file=sys.stderr)
        return 1

    try:
        settings = load_settings()
    except SettingsLoadError as e:
        print(e, file=sys.stderr)
        return 1

    logging.basicConfig(
        level=settings.log_level,
        format="%(levelname)s: %(message)s",
        stream=sys.stderr,
    )

    filepath = argv[0]
    engine = PaymentsEngine(num_consumers=settings.num_consumers)
    try:
        accounts = engine.process_file(filepath)
    except OSError as e:
        logger.error(f"Failed to read {filepath}: {e}")
        return 1

    write_accounts(accounts.values(), sys.stdout)

    # Print final processing report to stderr
    stats = engine.stats
    print(
        f"Processed: {stats.processed}, "
        f"Rejected: {stats.rejected}, "
        f"Malformed: {stats.malformed}",
        file=sys.stderr,
    )
    return 0


if __name__ == "__main__":
    sys.exit(main())
