import sys
import os
sys.path.append(os.getcwd())

from sqlalchemy import inspect, text
from app.db.session import engine

inspector = inspect(engine)
tables = inspector.get_table_names()
print("Tables:", tables)
print("Views:", inspector.get_view_names())

for table in ("users", "satellite_records"):
    if table in tables:
        print(f"\nColumns in '{table}':")
        for col in inspector.get_columns(table):
            print(f"- {col['name']} ({col['type']})")
    else:
        print(f"'{table}' table not found!")

with engine.connect() as conn:
    try:
        if "satellite_records" in tables:
            cnt = conn.execute(text("SELECT count(*) FROM satellite_records")).scalar()
            print(f"\nTotal records: {cnt}")
            rows = conn.execute(text(
                "SELECT task_result, count(*) FROM satellite_records GROUP BY task_result ORDER BY 2 DESC"
            )).all()
            for task_result, count in rows:
                print(f"  {task_result}: {count}")
        if "users" in tables:
            cnt = conn.execute(text("SELECT count(*) FROM users")).scalar()
            print(f"Total users: {cnt}")
    except Exception as e:
        print(f"Error counting rows: {e}")
