import hashlib, hmac, json
from datetime import datetime, timezone
from itsdangerous import URLSafeSerializer
from .config import SECRET_KEY

def utcnow() -> datetime:
    # naive UTC, matching what the database hands back
    return datetime.now(timezone.utc).replace(tzinfo=None)

def sha256_bytes(b: bytes) -> str:
    return hashlib.sha256(b).hexdigest()

def keyed_hash(value: str) -> str:
    return hmac.new(SECRET_KEY.encode(), value.encode(), hashlib.sha256).hexdigest()

def canonical_json(obj) -> str:
    return json.dumps(obj, sort_keys=True, separators=(",", ":"), default=str)

def make_token(payload: dict) -> str:
    s = URLSafeSerializer(SECRET_KEY, salt="staff-access")
    return s.dumps(payload)

def read_token(token: str) -> dict:
    s = URLSafeSerializer(SECRET_KEY, salt="staff-access")
    return s.loads(token)
