import sys
import os
import logging
sys.path.append(os.getcwd())

from app.db.init_db import init_db
from app.db.session import engine

logging.basicConfig(level=logging.INFO, format="%(asctime)s - %(name)s - %(levelname)s - %(message)s")

if __name__ == "__main__":
    init_db(engine)
    print("Database initialization complete.")
