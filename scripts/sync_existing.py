"""
Full resync of stored invoices into ledger movements.

Walks every invoice in the configured SQLite database and creates the
missing movements. Invoices already linked are skipped, so the script can
be re-run at any time.

Usage:
    python scripts/sync_existing.py                     # Resync, print summary
    python scripts/sync_existing.py --db ledger.db      # Explicit database
    python scripts/sync_existing.py --output out.json   # Save full results
"""

import argparse
import json
import sys
from pathlib import Path

# Add project root to path
sys.path.insert(0, str(Path(__file__).parent.parent))

from core.config import load_settings
from core.errors import RepositoryError
from core.observability import SyncStatsCollector, configure_logging
from reconciliation.engine import SyncOptions, build_synchronizer
from storage.sqlite_repository import SqliteLedgerRepository


def main() -> int:
    parser = argparse.ArgumentParser(description="Create missing ledger movements for all invoices")
    parser.add_argument("--db", type=Path, help="SQLite database (default: LEDGER_DB_PATH)")
    parser.add_argument("--core-id", help="Core id for every created movement")
    parser.add_argument("--status-id", help="Status id for every created movement")
    parser.add_argument("--output", "-o", type=Path, help="Write the full results as JSON")
    args = parser.parse_args()

    settings = load_settings()
    configure_logging(level=settings.log_level, json_format=settings.log_json)

    repository = SqliteLedgerRepository(args.db or settings.db_path)
    stats = SyncStatsCollector()
    synchronizer = build_synchronizer(repository, settings, stats)

    options = SyncOptions(core_id=args.core_id, status_id=args.status_id)

    try:
        repository.init_db()
        summary = synchronizer.sync_all_existing(options)
    except RepositoryError as e:
        print(f"Resync failed: {e.message}", file=sys.stderr)
        return 1

    result = summary.to_dict()
    print(json.dumps(result["summary"], indent=2))

    if args.output:
        args.output.write_text(json.dumps(result, indent=2), encoding="utf-8")
        print(f"\nResults written to {args.output}")

    return 0 if summary.errors == 0 else 2


if __name__ == "__main__":
    sys.exit(main())
