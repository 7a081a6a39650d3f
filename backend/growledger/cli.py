"""Management CLI.

Usage:
    python -m growledger.cli init-db      # Create all tables (development)
    python -m growledger.cli migrate      # Run Alembic upgrade head
    python -m growledger.cli counters     # Show sequence counter values
"""

import subprocess
import sys
from pathlib import Path

from sqlalchemy import create_engine, select

from growledger.config import settings
from growledger.database import Base
from growledger.models import SequenceCounter

BACKEND_DIR = Path(__file__).resolve().parent.parent


def init_db():
    """Create every ledger table directly, skipping Alembic."""
    engine = create_engine(settings.database_url_sync)
    Base.metadata.create_all(engine)
    print(f"Created {len(Base.metadata.tables)} table(s).")


def migrate():
    """Run Alembic upgrade head."""
    result = subprocess.run(
        [sys.executable, "-m", "alembic", "upgrade", "head"],
        cwd=BACKEND_DIR, capture_output=True, text=True,
    )
    if result.returncode != 0:
        print(f"  FAILED: {result.stderr}")
        sys.exit(result.returncode)
    print("  OK")


def list_counters():
    engine = create_engine(settings.database_url_sync)
    with engine.connect() as conn:
        rows = conn.execute(
            select(SequenceCounter.scope_id, SequenceCounter.counter_name, SequenceCounter.value)
            .order_by(SequenceCounter.scope_id, SequenceCounter.counter_name)
        ).all()
    for scope_id, name, value in rows:
        print(f"  {scope_id}  {name:<14} {value}")
    print(f"\n{len(rows)} counter(s)")


if __name__ == "__main__":
    cmd = sys.argv[1] if len(sys.argv) > 1 else ""
    if cmd == "init-db":
        init_db()
    elif cmd == "migrate":
        migrate()
    elif cmd == "counters":
        list_counters()
    else:
        print("Usage: python -m growledger.cli [init-db|migrate|counters]")
