"""Commerce management CLI.

Usage:
    python src/manage.py setup-db       # Create all tables
    python src/manage.py drop-db        # Drop all tables
    python src/manage.py expire-carts   # Delete idle guest carts (run from cron)
"""

import argparse
import sys


def setup_database():
    from commerce.domain import commerce
    from commerce.utils.db import setup_db

    print("Initializing commerce domain...")
    commerce.init()
    print("Creating commerce database schema...")
    setup_db(commerce)
    print("Done.")


def drop_database():
    from commerce.domain import commerce
    from commerce.utils.db import drop_db

    print("Initializing commerce domain...")
    commerce.init()
    print("Dropping commerce database schema...")
    drop_db(commerce)
    print("Done.")


def expire_guest_carts():
    from commerce.cart.expiry import ExpireGuestCarts
    from commerce.domain import commerce
    from commerce.utils.logging import configure_logging

    configure_logging()
    commerce.init()
    with commerce.domain_context():
        deleted = commerce.process(ExpireGuestCarts(), asynchronous=False)
    print(f"Deleted {deleted} expired guest cart(s).")


def main():
    parser = argparse.ArgumentParser(description="Commerce management")
    subparsers = parser.add_subparsers(dest="command", required=True)

    subparsers.add_parser("setup-db", help="Create all database tables")
    subparsers.add_parser("drop-db", help="Drop all database tables")
    subparsers.add_parser("expire-carts", help="Delete guest carts idle for more than seven days")

    args = parser.parse_args()

    if args.command == "setup-db":
        setup_database()
    elif args.command == "drop-db":
        drop_database()
    elif args.command == "expire-carts":
        expire_guest_carts()
    else:
        parser.print_help()
        sys.exit(1)


if __name__ == "__main__":
    main()
