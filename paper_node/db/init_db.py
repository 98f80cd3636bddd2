from __future__ import annotations

import argparse
import logging
from pathlib import Path

from sqlalchemy import text
from sqlmodel import SQLModel

from paper_node.db import tables  # noqa: F401  registers the tables on SQLModel.metadata
from paper_node.db.session import get_engine

logger = logging.getLogger(__name__)

ALEMBIC_DIR = Path(__file__).resolve().parents[2] / "alembic"


def tables_to_reset() -> list[str]:
    """Children before parents, so the drops never trip a foreign key."""
    return ["trades", "predictions", "accounts", "alembic_version"]


def migrate(alembic_dir: Path = ALEMBIC_DIR) -> None:
    """Bring the ledger schema to head. Without a migrations tree (installed wheel), create the tables directly."""
    engine = get_engine()
    if not (alembic_dir / "env.py").exists():
        logger.info("no migrations at %s, creating tables from metadata", alembic_dir)
        SQLModel.metadata.create_all(engine)
        return

    from alembic import command
    from alembic.config import Config

    config = Config()
    config.set_main_option("script_location", str(alembic_dir))
    config.set_main_option("sqlalchemy.url", engine.url.render_as_string(hide_password=False))
    command.upgrade(config, "head")
    logger.info("ledger schema at head")


def reset_db(alembic_dir: Path = ALEMBIC_DIR) -> None:
    """Drop every ledger table and migrate again. Destroys all accounts, predictions and trades."""
    engine = get_engine()
    cascade = " CASCADE" if engine.dialect.name == "postgresql" else ""
    with engine.begin() as conn:
        for table in tables_to_reset():
            conn.execute(text(f"DROP TABLE IF EXISTS {table}{cascade}"))
    logger.warning("ledger tables dropped")
    migrate(alembic_dir)


def main() -> None:
    parser = argparse.ArgumentParser(description="Create or reset the paper-trading ledger schema.")
    parser.add_argument("--reset", action="store_true", help="drop all ledger tables first")
    args = parser.parse_args()

    logging.basicConfig(
        level=logging.INFO,
        format="%(asctime)s | %(name)s | %(levelname)s | %(message)s",
        force=True,
    )
    if args.reset:
        reset_db()
    else:
        migrate()


if __name__ == "__main__":
    main()
