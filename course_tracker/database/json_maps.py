import json
import logging
from typing import Dict, Mapping, Union

from pydantic import TypeAdapter, ValidationError

from .kv_store import KeyValueStore, StoreError

logger = logging.getLogger(__name__)

# Persisted JSON objects use the decimal video id as key; pydantic coerces it back to int
_PROGRESS_ADAPTER = TypeAdapter(Dict[int, float])
_NOTES_ADAPTER = TypeAdapter(Dict[int, str])


async def _load_map(store: KeyValueStore, key: str, adapter: TypeAdapter) -> dict:
    """
    Reads one per-folder document.
    Store failures and malformed documents both yield an empty map.
    """
    try:
        raw = await store.get(key)
    except StoreError as e:
        logger.warning(f"⚠️ Could not read {key}: {e}")
        return {}

    if not raw:
        return {}

    try:
        return adapter.validate_json(raw)
    except ValidationError as e:
        logger.warning(f"⚠️ Discarding malformed data in {key}: {e.error_count()} error(s)")
        return {}


async def load_progress_map(store: KeyValueStore, key: str) -> Dict[int, float]:
    data = await _load_map(store, key, _PROGRESS_ADAPTER)
    return {video_id: min(100.0, max(0.0, pct)) for video_id, pct in data.items()}


async def load_notes_map(store: KeyValueStore, key: str) -> Dict[int, str]:
    return await _load_map(store, key, _NOTES_ADAPTER)


def dump_map(data: Mapping[int, Union[float, str]]) -> str:
    return json.dumps({str(k): v for k, v in data.items()}, ensure_ascii=False)
