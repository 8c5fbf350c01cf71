from datetime import datetime, timezone
from uuid import uuid4


def current_time() -> datetime:
    return datetime.now(timezone.utc).replace(tzinfo=None)


def epoch_millis(moment: datetime) -> int:
    """Milliseconds since the epoch for a naive UTC datetime."""
    return int(moment.replace(tzinfo=timezone.utc).timestamp() * 1000)


def new_id() -> str:
    return str(uuid4())


def normalize_code(value: str) -> str:
    return (value or '').strip().upper()
