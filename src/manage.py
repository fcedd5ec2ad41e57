"""PickHouse schema management.

Usage:
    PROTEAN_ENV=production python src/manage.py setup-db
    PROTEAN_ENV=production python src/manage.py drop-db

Only RDBMS providers are touched; the default in-memory configuration has
nothing to create.
"""

import argparse

from picking.utils.db import drop_db, setup_db

_COMMANDS = {
    "setup-db": (setup_db, "Create all picking tables"),
    "drop-db": (drop_db, "Drop all picking tables"),
}


def main() -> None:
    parser = argparse.ArgumentParser(description="PickHouse database management")
    subparsers = parser.add_subparsers(dest="command", required=True)
    for name, (_, help_text) in _COMMANDS.items():
        subparsers.add_parser(name, help=help_text)
    args = parser.parse_args()

    from picking.domain import picking

    picking.init()
    action, _ = _COMMANDS[args.command]
    action(picking)
    print(f"{args.command}: done")


if __name__ == "__main__":
    main()
