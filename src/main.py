import logging
import os
import sys
from decimal import Decimal
from typing import Dict, List, Mapping, Optional, TextIO

from models import ClientAccount
from payments_engine import PaymentsEngine

LOG_LEVEL_ENV_VAR = "PAYMENTS_LOG_LEVEL"
DEFAULT_LOG_LEVEL = logging.WARNING

OUTPUT_HEADER = "client,available,held,total,locked"


def log_level_from_env(environ: Mapping[str, str]) -> int:
    """Level named by PAYMENTS_LOG_LEVEL, or WARNING if unset or unknown."""
    level_name = environ.get(LOG_LEVEL_ENV_VAR, "").strip().upper()
    level = logging.getLevelName(level_name) if level_name else DEFAULT_LOG_LEVEL
    return level if isinstance(level, int) else DEFAULT_LOG_LEVEL


def configure_logging() -> None:
    logging.basicConfig(
        level=log_level_from_env(os.environ),
        format="%(levelname)s: %(message)s",
        stream=sys.stderr,
    )


def format_decimal(value: Decimal) -> str:
    """Plain notation, keeping whatever scale the value carries."""
    return f"{value:f}"


def write_accounts(accounts: Dict[int, ClientAccount], stream: TextIO) -> None:
    # No accounts means no output at all, header included
    if not accounts:
        return

    print(OUTPUT_HEADER, file=stream)
    for client_id in sorted(accounts.keys()):
        account = accounts[client_id]
        print(
            f"{client_id},"
            f"{format_decimal(account.available)},"
            f"{format_decimal(account.held)},"
            f"{format_decimal(account.total)},"
            f"{str(account.locked).lower()}",
            file=stream,
        )


def main(argv: Optional[List[str]] = None) -> int:
    args = sys.argv[1:] if argv is None else argv
    configure_logging()

    if not args:
        print("Please provide the CSV input filename", file=sys.stderr)
        print("Usage: payments-engine <input.csv>", file=sys.stderr)
        return 1

    filepath = args[0]
    engine = PaymentsEngine()
    try:
        accounts = engine.process_file(filepath)
    except OSError as e:
        print(f"{filepath}: {e.strerror or e}", file=sys.stderr)
        return 1

    write_accounts(accounts, sys.stdout)
    return 0


if __name__ == "__main__":
    sys.exit(main())
