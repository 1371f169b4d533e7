"""Script to run database migrations on every country database."""

import sys

from alembic import command
from alembic.config import Config

from medsync.constants import SUPPORTED_COUNTRIES


def _config_for(country: str) -> Config:
    alembic_cfg = Config("alembic.ini")
    # Read by alembic/env.py when no -x country argument is given
    alembic_cfg.set_main_option("country", country)
    return alembic_cfg


def run_migrations(countries: tuple[str, ...] = SUPPORTED_COUNTRIES) -> None:
    """Run database migrations to latest version."""
    for country in countries:
        try:
            print(f"Running {country} database migrations...")
            command.upgrade(_config_for(country), "head")
            print(f"✓ {country} migrations completed successfully!")
        except Exception as e:
            print(f"✗ {country} migration failed: {e}", file=sys.stderr)
            sys.exit(1)


if __name__ == "__main__":
    if len(sys.argv) > 1:
        selected = tuple(arg.upper() for arg in sys.argv[1:])
        unknown = [c for c in selected if c not in SUPPORTED_COUNTRIES]
        if unknown:
            print("Usage: python scripts/migrate.py [PE] [CL]")
            sys.exit(2)
        run_migrations(selected)
    else:
        run_migrations()
