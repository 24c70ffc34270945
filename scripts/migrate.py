"""Run or create Alembic migrations.

Usage:
    python scripts/migrate.py                    upgrade to head
    python scripts/migrate.py downgrade <rev>    downgrade to a revision
    python scripts/migrate.py create <message>   autogenerate a revision
"""

import sys

from alembic import command
from alembic.config import Config


def _config() -> Config:
    return Config("alembic.ini")


def main(argv: list[str]) -> int:
    try:
        if not argv:
            print("Running database migrations...")
            command.upgrade(_config(), "head")
        elif argv[0] == "downgrade" and len(argv) == 2:
            print(f"Downgrading to {argv[1]}...")
            command.downgrade(_config(), argv[1])
        elif argv[0] == "create" and len(argv) > 1:
            message = " ".join(argv[1:])
            print(f"Creating migration: {message}")
            command.revision(_config(), message=message, autogenerate=True)
        else:
            print(__doc__)
            return 2
    except Exception as e:
        print(f"✗ Migration failed: {e}", file=sys.stderr)
        return 1

    print("✓ Done")
    return 0


if __name__ == "__main__":
    sys.exit(main(sys.argv[1:]))
