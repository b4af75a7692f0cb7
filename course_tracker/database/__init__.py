from .kv_store import KeyValueStore, SQLiteKVStore, StoreError
from .json_maps import load_progress_map, load_notes_map, dump_map
