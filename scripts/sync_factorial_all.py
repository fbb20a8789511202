"""
Sync employees, projects and attendance shifts from Factorial HR

Phases run in sequence and stop at the first failure:
1. Employees -> subcontractors
2. Projects
3. Shifts -> time logs

Usage:
    python scripts/sync_factorial_all.py [--dry-run] [--preserve-local] [--strict-references] [--api-key KEY]
"""
import sys
import os
import argparse
import json

# Add parent directory to path
sys.path.insert(0, os.path.abspath(os.path.join(os.path.dirname(__file__), '..')))

# Load environment variables before the settings are built
from dotenv import load_dotenv
load_dotenv()

from billhub.errors import ConfigurationError
from billhub.logging import setup_logging
from billhub.services.factorial_client import FactorialClient
from billhub.services.integration_sync import SyncOptions, sync_all
from billhub.store.registry import get_store, init_store


def main():
    parser = argparse.ArgumentParser(
        description="Sync all data from Factorial HR to the billing hub",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  # Dry run to see what would be synced
  python scripts/sync_factorial_all.py --dry-run

  # Sync everything, keeping locally edited rates and budgets
  python scripts/sync_factorial_all.py --preserve-local

  # Only import shifts whose employee already exists
  python scripts/sync_factorial_all.py --strict-references
        """
    )
    parser.add_argument("--dry-run", action="store_true", help="Don't make any changes")
    parser.add_argument("--preserve-local", action="store_true", default=None, help="Only overwrite fields owned by Factorial")
    parser.add_argument("--strict-references", action="store_true", default=None, help="Defer shifts of unknown employees")
    parser.add_argument("--api-key", help="Factorial API key (defaults to the saved setting or FACTORIAL_API_KEY)")
    parser.add_argument("--json", action="store_true", help="Print the result as JSON")

    args = parser.parse_args()
    setup_logging()

    print("=" * 70)
    print("Factorial Full Synchronization")
    print("=" * 70)
    print(f"Mode: {'DRY RUN' if args.dry_run else 'LIVE'}")
    print("=" * 70)

    store = get_store()
    init_store(store)
    try:
        client = FactorialClient(api_key=args.api_key) if args.api_key else FactorialClient.from_store(store)
    except ConfigurationError as e:
        print(f"\n[ERROR] {e.message}")
        sys.exit(2)

    options = SyncOptions.from_settings(
        dry_run=args.dry_run,
        preserve_local_fields=args.preserve_local,
        strict_references=args.strict_references,
    )
    result = sync_all(store, client=client, options=options)

    if args.json:
        print(json.dumps(result.to_dict(), indent=2))
    else:
        for phase in ("employees", "projects", "time_entries"):
            stats = getattr(result, phase)
            print(f"{phase:>14}: written={stats.written} skipped={stats.skipped} deferred={len(stats.deferred)}")
        if result.success:
            print("\n[OK] Sync completed")
        else:
            print(f"\n[ERROR] Sync failed during {result.failed_phase}: {result.error}")

    sys.exit(0 if result.success else 1)


if __name__ == "__main__":
    main()
