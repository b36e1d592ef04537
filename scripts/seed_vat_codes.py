"""
Seed the standard Italian VAT codes into the ledger database.

Usage:
    python scripts/seed_vat_codes.py
    python scripts/seed_vat_codes.py --db ledger.db
"""

import argparse
import sys
from pathlib import Path

# Add project root to path
sys.path.insert(0, str(Path(__file__).parent.parent))

from core.config import load_settings
from core.observability import configure_logging
from storage.seed import seed_standard_vat_codes
from storage.sqlite_repository import SqliteLedgerRepository


def main() -> None:
    parser = argparse.ArgumentParser(description="Seed standard VAT codes")
    parser.add_argument("--db", type=Path, help="SQLite database (default: LEDGER_DB_PATH)")
    args = parser.parse_args()

    settings = load_settings()
    configure_logging(level=settings.log_level, json_format=settings.log_json)

    repository = SqliteLedgerRepository(args.db or settings.db_path)
    repository.init_db()
    count = seed_standard_vat_codes(repository)
    print(f"Seeded {count} VAT codes into {repository.db_path}")


if __name__ == "__main__":
    main()
