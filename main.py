"""Command-line interface for the user directory service."""

from __future__ import annotations
import argparse
import logging
import sys
from typing import Sequence

from userdir.config import load_store_settings
from userdir.store import RecordStore, StoreError, ValidationError, build_record_store

logger = logging.getLogger("userdir.main")

_KNOWN_COMMANDS = {"serve", "init-db", "list", "add", "delete"}


def _parse_args(argv: Sequence[str] | None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="User directory utilities")
    subparsers = parser.add_subparsers(dest="command")

    parser.set_defaults(command="serve")

    serve_parser = subparsers.add_parser("serve", help="Start the HTTP service")
    serve_parser.add_argument("--host", default="127.0.0.1", help="Bind address for the service")
    serve_parser.add_argument(
        "--port",
        type=int,
        default=8000,
        help="Port for the HTTP service (default: 8000)",
    )

    subparsers.add_parser("init-db", help="Initialise the configured record store")
    subparsers.add_parser("list", help="List all users")

    add_parser = subparsers.add_parser("add", help="Create a user")
    add_parser.add_argument("name", help="Display name for the user")
    add_parser.add_argument("email", help="Email address for the user")

    delete_parser = subparsers.add_parser("delete", help="Delete a user by id")
    delete_parser.add_argument("user_id", help="Identifier of the user to delete")

    args_list = list(argv) if argv is not None else sys.argv[1:]

    if not args_list:
        args_list = ["serve"]
    else:
        first = args_list[0]
        if first in ("-h", "--help"):
            return parser.parse_args(args_list)
        if first not in _KNOWN_COMMANDS:
            if any(flag in args_list for flag in ("-h", "--help")):
                return parser.parse_args(args_list)
            args_list = ["serve", *args_list]

    return parser.parse_args(args_list)


def _open_store() -> RecordStore:
    return build_record_store(load_store_settings())


def _serve(*, store: RecordStore, host: str, port: int) -> None:
    from userdir.application import create_application
    import uvicorn

    logger.info("Starting user directory on http://%s:%s", host, port)
    app = create_application(store=store)
    uvicorn.run(app, host=host, port=port, log_level="info")


def _list_users(store: RecordStore) -> None:
    users = store.list_users()
    if not users:
        print("No users are currently registered.")
        return

    print(f"{len(users)} user(s) found:")
    print(f"{'ID':<36}  {'Name':<24}  {'Email':<32}  Created")
    print("-" * 120)
    for user in users:
        created = user.created_at.strftime("%Y-%m-%d %H:%M:%S %Z")
        print(f"{user.id:<36}  {user.name:<24}  {user.email:<32}  {created}")


def _add_user(store: RecordStore, name: str, email: str) -> None:
    for user in store.create_user(name, email):
        print(f"Created user {user.id}: {user.name} <{user.email}>")


def _delete_user(store: RecordStore, user_id: str) -> None:
    store.delete_user(user_id)
    print(f"Deleted user {user_id}.")


def main(argv: Sequence[str] | None = None) -> int:
    """Entry point for CLI usage."""

    logging.basicConfig(level=logging.INFO, format="%(asctime)s [%(levelname)s] %(message)s")

    args = _parse_args(argv)
    store = _open_store()
    try:
        if args.command == "serve":
            # create_application initialises the store.
            _serve(store=store, host=args.host, port=args.port)
            return 0

        store.initialize()
        if args.command == "init-db":
            print("Record store initialisation complete.")
        elif args.command == "list":
            _list_users(store)
        elif args.command == "add":
            _add_user(store, args.name, args.email)
        elif args.command == "delete":
            _delete_user(store, args.user_id)
    except ValidationError as exc:
        print(f"Error: {exc}", file=sys.stderr)
        return 2
    except StoreError as exc:
        logger.error("Record store request failed: %s", exc)
        return 1
    finally:
        store.close()
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
