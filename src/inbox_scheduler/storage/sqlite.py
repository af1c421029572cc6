"""SQLite-backed persistence for scheduled actions and their wake times."""

from __future__ import annotations

import json
import logging
import sqlite3
from dataclasses import dataclass
from datetime import UTC, datetime
from pathlib import Path
from types import TracebackType

from ..core.config import StorageSettings
from ..core.interfaces import ActionStore
from ..core.models import ScheduledAction

LOGGER = logging.getLogger(__name__)


class StorageError(RuntimeError):
    """Raised when the stored action list cannot be read or written."""


class SqliteActionRepository:
    """Persist every owner's action list and armed wake time using SQLite."""

    def __init__(self, settings: StorageSettings) -> None:
        """Initialise the repository and apply migrations."""
        self._settings = settings
        db_path = Path(settings.db_path)
        db_path.parent.mkdir(parents=True, exist_ok=True)
        self._connection = sqlite3.connect(
            db_path,
            check_same_thread=False,
        )
        self._connection.row_factory = sqlite3.Row
        self._apply_migrations()

    # Context manager helpers -------------------------------------------------
    def __enter__(self) -> SqliteActionRepository:
        """Enter context manager scope."""
        return self

    def __exit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        exc_tb: TracebackType | None,
    ) -> None:
        """Ensure the connection is closed when exiting context manager."""
        self.close()

    # Owner-scoped API --------------------------------------------------------
    def for_owner(self, owner_id: str) -> OwnerActionStore:
        """Return an :class:`ActionStore` bound to ``owner_id``."""
        if not owner_id:
            raise ValueError("Owner id is required")
        return OwnerActionStore(repository=self, owner_id=owner_id)

    def load_actions(self, owner_id: str) -> list[ScheduledAction]:
        """Return the stored action list for ``owner_id``."""
        row = self._connection.execute(
            "SELECT actions FROM scheduled_actions WHERE owner_id = ?",
            (owner_id,),
        ).fetchone()
        if row is None:
            return []
        try:
            payload = json.loads(row["actions"])
            return [ScheduledAction.from_dict(item) for item in payload]
        except (json.JSONDecodeError, KeyError, TypeError, ValueError) as exc:
            LOGGER.error(
                "Stored action list for owner %s is unreadable: %s",
                owner_id,
                exc,
                exc_info=True,
            )
            raise StorageError(
                f"Stored action list for owner {owner_id} is unreadable: {exc}"
            ) from exc

    def save_actions(self, owner_id: str, actions: list[ScheduledAction]) -> None:
        """Replace the stored action list for ``owner_id``."""
        payload = json.dumps(
            [action.to_dict(include_secrets=True) for action in actions]
        )
        updated_at = datetime.now(tz=UTC).isoformat()
        with self._connection:
            self._connection.execute(
                """
                INSERT INTO scheduled_actions (owner_id, actions, updated_at)
                VALUES (?, ?, ?)
                ON CONFLICT(owner_id) DO UPDATE SET
                    actions=excluded.actions,
                    updated_at=excluded.updated_at
                """,
                (owner_id, payload, updated_at),
            )
        LOGGER.debug("Saved %d action(s) for owner %s", len(actions), owner_id)

    def get_alarm(self, owner_id: str) -> int | None:
        """Return the armed wake time for ``owner_id``."""
        row = self._connection.execute(
            "SELECT wake_at FROM alarms WHERE owner_id = ?",
            (owner_id,),
        ).fetchone()
        return int(row["wake_at"]) if row else None

    def set_alarm(self, owner_id: str, wake_at: int) -> None:
        """Persist ``wake_at`` as the single wake time for ``owner_id``."""
        with self._connection:
            self._connection.execute(
                """
                INSERT INTO alarms (owner_id, wake_at) VALUES (?, ?)
                ON CONFLICT(owner_id) DO UPDATE SET wake_at=excluded.wake_at
                """,
                (owner_id, wake_at),
            )

    def clear_alarm(self, owner_id: str) -> None:
        """Remove the wake time for ``owner_id`` if one is stored."""
        with self._connection:
            self._connection.execute(
                "DELETE FROM alarms WHERE owner_id = ?", (owner_id,)
            )

    def list_alarms(self) -> dict[str, int]:
        """Return every armed wake time keyed by owner id."""
        cursor = self._connection.execute(
            "SELECT owner_id, wake_at FROM alarms ORDER BY wake_at"
        )
        return {row["owner_id"]: int(row["wake_at"]) for row in cursor.fetchall()}

    def close(self) -> None:
        """Close the underlying SQLite connection."""
        self._connection.close()

    # Internal helpers --------------------------------------------------------
    def _apply_migrations(self) -> None:
        schema_dir = Path(__file__).resolve().parent / "schema"
        for migration in sorted(schema_dir.glob("*.sql")):
            LOGGER.debug("Applying migration %s", migration.name)
            script = migration.read_text(encoding="utf-8")
            with self._connection:
                self._connection.executescript(script)


@dataclass
class OwnerActionStore(ActionStore):
    """View of :class:`SqliteActionRepository` restricted to one owner."""

    repository: SqliteActionRepository
    owner_id: str

    def load(self) -> list[ScheduledAction]:
        return self.repository.load_actions(self.owner_id)

    def save(self, actions: list[ScheduledAction]) -> None:
        self.repository.save_actions(self.owner_id, actions)

    def get_alarm(self) -> int | None:
        return self.repository.get_alarm(self.owner_id)

    def set_alarm(self, wake_at: int) -> None:
        self.repository.set_alarm(self.owner_id, wake_at)

    def clear_alarm(self) -> None:
        self.repository.clear_alarm(self.owner_id)


__all__ = ["OwnerActionStore", "SqliteActionRepository", "StorageError"]
