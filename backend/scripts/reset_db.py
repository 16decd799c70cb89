import sys
import os
sys.path.append(os.getcwd())

from sqlalchemy import MetaData, text
from app.db.init_db import SUMMARY_VIEW, init_db
from app.db.session import engine

def reset_db():
    print("Resetting database...")

    # The view depends on satellite_records, drop it first
    with engine.begin() as conn:
        conn.execute(text(f"DROP VIEW IF EXISTS {SUMMARY_VIEW}"))

    # Reflect all tables to drop everything, not just known models
    meta = MetaData()
    meta.reflect(bind=engine)
    print(f"Dropping tables: {meta.sorted_tables}")
    meta.drop_all(bind=engine)

    print("Recreating schema and default admin user...")
    init_db(engine)
    print("Database reset complete.")

if __name__ == "__main__":
    reset_db()
