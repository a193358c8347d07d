from __future__ import annotations

import json
import sqlite3
from abc import ABC, abstractmethod
from contextlib import contextmanager
from pathlib import Path
from typing import Any, Dict, Iterator, List, Optional

from swift_responder.config import DB_PATH
from swift_responder.errors import StorageError
from swift_responder.models import DispatchHistory, EmergencyRequest


class DispatchStore(ABC):
    """Persistence for dispatch history, emergency requests and user preferences."""

    @abstractmethod
    def save_history(self, record: DispatchHistory) -> None:
        raise NotImplementedError

    @abstractmethod
    def get_all_history(self) -> List[DispatchHistory]:
        """Return every history record, newest first."""
        raise NotImplementedError

    def get_history_by_range(self, start: float, end: float) -> List[DispatchHistory]:
        return [record for record in self.get_all_history() if start <= record.timestamp <= end]

    @abstractmethod
    def delete_history(self, history_id: str) -> bool:
        raise NotImplementedError

    @abstractmethod
    def clear_history(self) -> None:
        raise NotImplementedError

    @abstractmethod
    def save_request(self, request: EmergencyRequest) -> None:
        raise NotImplementedError

    @abstractmethod
    def get_all_requests(self) -> List[EmergencyRequest]:
        raise NotImplementedError

    @abstractmethod
    def update_request_status(self, request_id: str, status: str) -> Optional[EmergencyRequest]:
        raise NotImplementedError

    @abstractmethod
    def save_preference(self, key: str, value: Any) -> None:
        raise NotImplementedError

    @abstractmethod
    def get_preference(self, key: str, default: Any = None) -> Any:
        raise NotImplementedError


class InMemoryDispatchStore(DispatchStore):
    def __init__(self) -> None:
        self.history: Dict[str, DispatchHistory] = {}
        self.requests: Dict[str, EmergencyRequest] = {}
        self.preferences: Dict[str, Any] = {}

    def save_history(self, record: DispatchHistory) -> None:
        self.history[record.history_id] = record

    def get_all_history(self) -> List[DispatchHistory]:
        return sorted(self.history.values(), key=lambda record: record.timestamp, reverse=True)

    def delete_history(self, history_id: str) -> bool:
        return self.history.pop(history_id, None) is not None

    def clear_history(self) -> None:
        self.history.clear()

    def save_request(self, request: EmergencyRequest) -> None:
        self.requests[request.request_id] = request

    def get_all_requests(self) -> List[EmergencyRequest]:
        return sorted(self.requests.values(), key=lambda request: request.timestamp, reverse=True)

    def update_request_status(self, request_id: str, status: str) -> Optional[EmergencyRequest]:
        request = self.requests.get(request_id)
        if request is None:
            return None
        updated = EmergencyRequest.from_dict({**request.to_dict(), "status": status})
        self.requests[request_id] = updated
        return updated

    def save_preference(self, key: str, value: Any) -> None:
        self.preferences[key] = value

    def get_preference(self, key: str, default: Any = None) -> Any:
        return self.preferences.get(key, default)


class SQLiteDispatchStore(DispatchStore):
    def __init__(self, db_path: Path = DB_PATH) -> None:
        self.db_path = Path(db_path)

    def init_db(self) -> None:
        self.db_path.parent.mkdir(parents=True, exist_ok=True)
        with self.get_conn() as conn:
            conn.execute(
                """
                CREATE TABLE IF NOT EXISTS dispatch_history (
                    id TEXT PRIMARY KEY,
                    timestamp REAL NOT NULL,
                    outcome TEXT NOT NULL,
                    payload TEXT NOT NULL
                )
                """
            )
            conn.execute(
                """
                CREATE TABLE IF NOT EXISTS emergency_requests (
                    id TEXT PRIMARY KEY,
                    timestamp REAL NOT NULL,
                    status TEXT NOT NULL,
                    payload TEXT NOT NULL
                )
                """
            )
            conn.execute(
                """
                CREATE TABLE IF NOT EXISTS user_preferences (
                    key TEXT PRIMARY KEY,
                    value TEXT NOT NULL
                )
                """
            )
            conn.execute("CREATE INDEX IF NOT EXISTS idx_history_timestamp ON dispatch_history(timestamp)")

    @contextmanager
    def get_conn(self) -> Iterator[sqlite3.Connection]:
        try:
            conn = sqlite3.connect(self.db_path)
        except sqlite3.Error as exc:
            raise StorageError(f"Cannot open database {self.db_path}: {exc}") from exc
        conn.row_factory = sqlite3.Row
        try:
            yield conn
            conn.commit()
        except sqlite3.Error as exc:
            raise StorageError(str(exc)) from exc
        finally:
            conn.close()

    def save_history(self, record: DispatchHistory) -> None:
        with self.get_conn() as conn:
            conn.execute(
                "INSERT OR REPLACE INTO dispatch_history (id,timestamp,outcome,payload) VALUES (?,?,?,?)",
                (record.history_id, record.timestamp, record.outcome.value, json.dumps(record.to_dict())),
            )

    def get_all_history(self) -> List[DispatchHistory]:
        with self.get_conn() as conn:
            rows = conn.execute("SELECT payload FROM dispatch_history ORDER BY timestamp DESC").fetchall()
        return [DispatchHistory.from_dict(json.loads(row["payload"])) for row in rows]

    def get_history_by_range(self, start: float, end: float) -> List[DispatchHistory]:
        with self.get_conn() as conn:
            rows = conn.execute(
                "SELECT payload FROM dispatch_history WHERE timestamp BETWEEN ? AND ? ORDER BY timestamp DESC",
                (start, end),
            ).fetchall()
        return [DispatchHistory.from_dict(json.loads(row["payload"])) for row in rows]

    def delete_history(self, history_id: str) -> bool:
        with self.get_conn() as conn:
            cursor = conn.execute("DELETE FROM dispatch_history WHERE id=?", (history_id,))
            return cursor.rowcount > 0

    def clear_history(self) -> None:
        with self.get_conn() as conn:
            conn.execute("DELETE FROM dispatch_history")

    def save_request(self, request: EmergencyRequest) -> None:
        with self.get_conn() as conn:
            conn.execute(
                "INSERT OR REPLACE INTO emergency_requests (id,timestamp,status,payload) VALUES (?,?,?,?)",
                (request.request_id, request.timestamp, request.status, json.dumps(request.to_dict())),
            )

    def get_all_requests(self) -> List[EmergencyRequest]:
        with self.get_conn() as conn:
            rows = conn.execute("SELECT payload FROM emergency_requests ORDER BY timestamp DESC").fetchall()
        return [EmergencyRequest.from_dict(json.loads(row["payload"])) for row in rows]

    def update_request_status(self, request_id: str, status: str) -> Optional[EmergencyRequest]:
        with self.get_conn() as conn:
            row = conn.execute("SELECT payload FROM emergency_requests WHERE id=?", (request_id,)).fetchone()
            if not row:
                return None
            data = json.loads(row["payload"])
            data["status"] = status
            conn.execute(
                "UPDATE emergency_requests SET status=?, payload=? WHERE id=?",
                (status, json.dumps(data), request_id),
            )
        return EmergencyRequest.from_dict(data)

    def save_preference(self, key: str, value: Any) -> None:
        with self.get_conn() as conn:
            conn.execute(
                "INSERT OR REPLACE INTO user_preferences (key,value) VALUES (?,?)",
                (key, json.dumps(value)),
            )

    def get_preference(self, key: str, default: Any = None) -> Any:
        with self.get_conn() as conn:
            row = conn.execute("SELECT value FROM user_preferences WHERE key=?", (key,)).fetchone()
        return json.loads(row["value"]) if row else default
