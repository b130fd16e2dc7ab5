import argparse
import sys
from pathlib import Path

ROOT = Path(__file__).resolve().parent.parent
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from userdir.config import StoreSettings, load_store_settings
from userdir.store import StoreError, ValidationError, build_record_store


def parse_args() -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Create a user in the configured record store")
    parser.add_argument("name", help="Display name for the user")
    parser.add_argument("email", help="Email address for the user")
    parser.add_argument(
        "--store-url",
        dest="store_url",
        default=None,
        help="Record store URL (defaults to USERDIR_STORE_URL); sqlite:///path selects a local file",
    )
    return parser.parse_args()


def main() -> int:
    args = parse_args()

    settings = load_store_settings()
    if args.store_url:
        settings = StoreSettings(url=args.store_url, key=settings.key, table=settings.table)

    store = build_record_store(settings)
    try:
        store.initialize()
        created = store.create_user(args.name, args.email)
    except (ValidationError, StoreError) as exc:
        print(f"Error: {exc}", file=sys.stderr)
        return 1
    finally:
        store.close()

    for user in created:
        print(f"Created user {user.id}: {user.name} <{user.email}>")
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
