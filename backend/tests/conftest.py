import os

# The app module builds its engine at import time; keep test runs off Postgres.
os.environ.setdefault("DATABASE_URL", "sqlite+pysqlite:///:memory:")
os.environ.setdefault("AUTO_CREATE_SCHEMA", "false")
os.environ.setdefault("SEED_DEMO_DATA", "false")
