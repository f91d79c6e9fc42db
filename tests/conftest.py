import os

# config.config refuses to import without a DB password
os.environ.setdefault("DB_PASSWORD", "test")
os.environ.setdefault("LOG_LEVEL", "WARNING")
