import os
from pathlib import Path

from pydantic import ValidationError

from .models import QueueSettings
from .storage import Store


def default_db_path() -> Path:
    home = Path(os.environ.get("CRAWLQ_HOME", Path.home() / ".crawlq"))
    return home / "queue.db"


def normalize_key(key: str) -> str:
    # accept `max-retries` as well as `max_retries`
    return key.strip().replace("-", "_")


def load_settings(store: Store) -> QueueSettings:
    raw = {k: store.config_get(k) for k in QueueSettings.model_fields}
    return QueueSettings.model_validate({k: v for k, v in raw.items() if v is not None})


def set_setting(store: Store, key: str, value: str) -> str:
    """Validate and persist one config key. Unknown keys are rejected."""
    key = normalize_key(key)
    if key not in QueueSettings.model_fields:
        raise KeyError(key)
    current = load_settings(store).model_dump()
    current[key] = value
    try:
        QueueSettings.model_validate(current)
    except ValidationError as e:
        raise ValueError(f"invalid value for {key}: {value!r}") from e
    store.config_set(key, value)
    return key
