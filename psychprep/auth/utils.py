import hmac
from datetime import datetime, timedelta, timezone

import bcrypt

# last_login timestamps are recorded in India Standard Time
IST = timezone(timedelta(hours=5, minutes=30))


def hash_password(password: str) -> str:
    return bcrypt.hashpw(password.encode(), bcrypt.gensalt()).decode()


def verify_password(password: str, stored: str, legacy: bool = False) -> bool:
    """Check a password against a bcrypt hash, or a plaintext value when `legacy`."""
    if legacy:
        return hmac.compare_digest(password.encode(), stored.encode())
    try:
        return bcrypt.checkpw(password.encode(), stored.encode())
    except ValueError:
        return False


def now_ist() -> str:
    return datetime.now(IST).isoformat()
