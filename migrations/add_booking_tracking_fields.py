"""
Add front desk tracking fields to bookings table

Migration to add:
- tracking_status
- checked_in_at, session_started_at, session_ended_at, session_completed_at
- cancelled_at, cancellation_reason
- receptionist_notes
- clinic_id
- version (optimistic concurrency token)

Run with: python migrations/add_booking_tracking_fields.py
"""

import logging
import sys
from pathlib import Path

# Add parent directory to path
sys.path.insert(0, str(Path(__file__).parent.parent))

from sqlalchemy import inspect, text

logging.basicConfig(level=logging.INFO, format="%(message)s")
logger = logging.getLogger(__name__)

TRACKING_COLUMNS = {
    "tracking_status": "VARCHAR(20)",
    "checked_in_at": "TIMESTAMP",
    "session_started_at": "TIMESTAMP",
    "session_ended_at": "TIMESTAMP",
    "session_completed_at": "TIMESTAMP",
    "cancelled_at": "TIMESTAMP",
    "cancellation_reason": "TEXT",
    "receptionist_notes": "TEXT",
    "clinic_id": "VARCHAR(36)",
    "version": "INTEGER NOT NULL DEFAULT 1",
}


def upgrade(engine) -> list[str]:
    """Add missing tracking columns; returns the names that were added"""
    existing_columns = {column["name"] for column in inspect(engine).get_columns("bookings")}
    added = []

    with engine.connect() as conn:
        for name, ddl in TRACKING_COLUMNS.items():
            if name in existing_columns:
                logger.info(f"ℹ️  {name} column already exists")
                continue
            conn.execute(text(f"ALTER TABLE bookings ADD COLUMN {name} {ddl}"))
            added.append(name)
            logger.info(f"✅ Added {name} column")
        conn.commit()

    return added


if __name__ == "__main__":
    from clinic_api.database import engine

    try:
        upgrade(engine)
        logger.info("✅ Migration completed successfully!")
    except Exception as e:
        logger.error(f"❌ Migration failed: {e}")
        sys.exit(1)
