import os

DATABASE_URL = os.getenv("DATABASE_URL", "sqlite:///./cosign.db")
SECRET_KEY = os.getenv("SECRET_KEY", "devsecret")
ADMIN_ACCESS_TOKEN = os.getenv("ADMIN_ACCESS_TOKEN")
SIGNATURE_TTL_DAYS = int(os.getenv("SIGNATURE_TTL_DAYS", "30"))
SIGNING_BASE_URL = os.getenv("SIGNING_BASE_URL", "http://localhost:3000/sign")
REDIS_URL = os.getenv("REDIS_URL", "redis://redis:6379/0")
WORKER_QUEUE = os.getenv("WORKER_QUEUE", "signing")
SWEEP_INTERVAL_SECONDS = int(os.getenv("SWEEP_INTERVAL_SECONDS", "300"))
LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO")
