"""Scene Store: durable persistence of scenes.

The resolver depends only on the :class:`SceneStore` protocol, so any
backend with ``save`` / ``load`` / ``list_scenes`` can be injected.  The
shipped backend is :class:`SqliteSceneStore`.

Storage layout
--------------
One row per scene.  The full scene is stored as a JSON document in
``state``; a handful of columns are duplicated beside it so chronicle
listings do not need to decode every document.

Atomicity
---------
``save`` is a single upsert inside a write scope: it commits on success
and rolls back on any error, so a scene row is always either the previous
committed state or the new one, never a mix.

Threading
---------
``sqlite3`` is blocking.  The async methods run each operation in a worker
thread with ``asyncio.to_thread`` and open a fresh connection per call.
"""

from __future__ import annotations

import asyncio
import json
import logging
from dataclasses import dataclass
from pathlib import Path
from typing import NoReturn, Protocol

from chronicle_server.game.errors import SessionNotFound
from chronicle_server.game.session import Scene
from chronicle_server.store.connection import connection_scope, init_schema
from chronicle_server.store.errors import (
    StoreError,
    StoreOperationContext,
    StoreReadError,
    StoreWriteError,
)

logger = logging.getLogger(__name__)


def _raise_read_error(operation: str, exc: Exception, *, details: str | None = None) -> NoReturn:
    """Raise a typed store read error while preserving chained cause."""
    if isinstance(exc, StoreError):
        raise exc
    raise StoreReadError(
        context=StoreOperationContext(operation=operation, details=details),
        cause=exc,
    ) from exc


def _raise_write_error(operation: str, exc: Exception, *, details: str | None = None) -> NoReturn:
    """Raise a typed store write error while preserving chained cause."""
    if isinstance(exc, StoreError):
        raise exc
    raise StoreWriteError(
        context=StoreOperationContext(operation=operation, details=details),
        cause=exc,
    ) from exc


@dataclass(slots=True)
class SceneSummary:
    """Listing row for a saved scene (a "chronicle")."""

    scene_id: str
    mode: str
    persona_id: str
    player_name: str
    opponent_name: str | None
    round: int
    game_over: bool
    created_at: str
    updated_at: str


class SceneStore(Protocol):
    """Persistence interface the resolver is written against."""

    async def save(self, scene: Scene) -> None: ...

    async def load(self, scene_id: str) -> Scene: ...

    async def list_scenes(self) -> list[SceneSummary]: ...


class SqliteSceneStore:
    """SQLite-backed :class:`SceneStore`."""

    def __init__(self, db_path: Path | str) -> None:
        self._db_path = Path(db_path)
        try:
            init_schema(self._db_path)
        except Exception as exc:
            _raise_write_error("scenes.init_schema", exc, details=f"path={self._db_path}")

    @classmethod
    def from_config(cls, settings=None) -> SqliteSceneStore:
        """Build a store from :class:`~chronicle_server.config.StoreSettings`.

        Defaults to the runtime configuration's store section.
        """
        if settings is None:
            from chronicle_server.config import config

            settings = config.store
        return cls(settings.absolute_path)

    @property
    def db_path(self) -> Path:
        return self._db_path

    # ── Async interface ───────────────────────────────────────────────────────

    async def save(self, scene: Scene) -> None:
        await asyncio.to_thread(self._save, scene)

    async def load(self, scene_id: str) -> Scene:
        """Return the stored scene.

        Raises:
            SessionNotFound: No row for ``scene_id``.
            StoreReadError:  Query or decode failure.
        """
        return await asyncio.to_thread(self._load, scene_id)

    async def list_scenes(self) -> list[SceneSummary]:
        """Summaries of all stored scenes, most recently updated first."""
        return await asyncio.to_thread(self._list_scenes)

    # ── Blocking implementations ──────────────────────────────────────────────

    def _save(self, scene: Scene) -> None:
        state = json.dumps(scene.to_dict())
        try:
            with connection_scope(self._db_path, write=True) as conn:
                conn.execute(
                    """
                    INSERT INTO scenes (
                        scene_id, mode, persona_id, player_name, opponent_name,
                        round, game_over, state, created_at, updated_at
                    )
                    VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
                    ON CONFLICT(scene_id) DO UPDATE SET
                        mode = excluded.mode,
                        persona_id = excluded.persona_id,
                        player_name = excluded.player_name,
                        opponent_name = excluded.opponent_name,
                        round = excluded.round,
                        game_over = excluded.game_over,
                        state = excluded.state,
                        updated_at = excluded.updated_at
                    """,
                    (
                        scene.scene_id,
                        scene.mode.value,
                        scene.persona_id,
                        scene.player.name,
                        scene.opponent_name or None,
                        scene.round,
                        int(scene.game_over),
                        state,
                        scene.created_at,
                        scene.updated_at,
                    ),
                )
        except Exception as exc:
            _raise_write_error("scenes.save", exc, details=f"scene_id={scene.scene_id!r}")
        logger.debug("Saved scene %s (mode=%s, round=%d)", scene.scene_id, scene.mode.value, scene.round)

    def _load(self, scene_id: str) -> Scene:
        try:
            with connection_scope(self._db_path) as conn:
                row = conn.execute("SELECT state FROM scenes WHERE scene_id = ?", (scene_id,)).fetchone()
        except Exception as exc:
            _raise_read_error("scenes.load", exc, details=f"scene_id={scene_id!r}")

        if row is None:
            raise SessionNotFound(scene_id)

        try:
            return Scene.from_dict(json.loads(row[0]))
        except (ValueError, KeyError, TypeError) as exc:
            _raise_read_error("scenes.decode", exc, details=f"scene_id={scene_id!r}")

    def _list_scenes(self) -> list[SceneSummary]:
        try:
            with connection_scope(self._db_path) as conn:
                rows = conn.execute(
                    """
                    SELECT scene_id, mode, persona_id, player_name, opponent_name,
                           round, game_over, created_at, updated_at
                    FROM scenes
                    ORDER BY updated_at DESC
                    """
                ).fetchall()
        except Exception as exc:
            _raise_read_error("scenes.list_scenes", exc)

        return [
            SceneSummary(
                scene_id=row[0],
                mode=row[1],
                persona_id=row[2],
                player_name=row[3],
                opponent_name=row[4],
                round=int(row[5]),
                game_over=bool(row[6]),
                created_at=row[7],
                updated_at=row[8],
            )
            for row in rows
        ]
