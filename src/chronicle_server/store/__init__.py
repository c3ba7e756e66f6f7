"""Scene Store package: durable scene persistence (SQLite)."""

from chronicle_server.store.errors import StoreError, StoreReadError, StoreWriteError
from chronicle_server.store.scene_store import SceneStore, SceneSummary, SqliteSceneStore

__all__ = [
    "SceneStore",
    "SceneSummary",
    "SqliteSceneStore",
    "StoreError",
    "StoreReadError",
    "StoreWriteError",
]
