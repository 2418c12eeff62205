"""SQLite 타겟 (로컬 검증용)

SQLite는 writer가 하나뿐이므로 워커 트랜잭션은 BEGIN IMMEDIATE로 시작하고
다른 워커는 busy_timeout 동안 쓰기 잠금을 기다린다.
"""

import logging
import sqlite3
import threading
from pathlib import Path

from geo_migration.db.base import TargetStore, TargetTransaction
from geo_migration.errors import TargetError
from geo_migration.models import GeoRecord
from geo_migration.statements import InsertStatement

logger = logging.getLogger(__name__)


class SQLiteTransaction(TargetTransaction):
    """sqlite3 트랜잭션"""

    driver_errors = (sqlite3.Error,)
    begin_sql = "BEGIN IMMEDIATE"

    def __init__(self, store: "SQLiteTarget", conn: sqlite3.Connection):
        super().__init__(store, conn)
        self._sql: dict[str, str] = {}

    def prepare(self, statement: InsertStatement) -> None:
        # EXPLAIN으로 컴파일만 해서 테이블/컬럼 오류를 미리 확인
        sql = statement.render("named")
        try:
            self.cursor.execute(f"EXPLAIN {sql}", dict.fromkeys(statement.fields))
        except sqlite3.Error as e:
            raise TargetError(f"prepare 실패: {e}", stage="prepare") from e
        self._sql[statement.name] = sql

    def _execute_prepared(self, statement: InsertStatement, record: GeoRecord) -> int:
        self.cursor.execute(self._sql[statement.name], statement.named_values(record))
        return self.cursor.rowcount


class SQLiteTarget(TargetStore):
    """SQLite 타겟 DB (워커마다 커넥션 생성)"""

    def __init__(self, path: str | Path, busy_timeout: float = 60.0):
        self.path = Path(path)
        if not self.path.exists():
            raise TargetError(f"타겟 DB 파일이 없습니다: {self.path}", stage="connect")
        self.busy_timeout = busy_timeout
        self._lock = threading.Lock()
        self._connections: set[sqlite3.Connection] = set()

    def _acquire(self) -> sqlite3.Connection:
        try:
            conn = sqlite3.connect(
                self.path,
                timeout=self.busy_timeout,
                isolation_level=None,
                check_same_thread=False,
            )
        except sqlite3.Error as e:
            raise TargetError(f"커넥션 생성 실패: {e}", stage="begin") from e
        with self._lock:
            self._connections.add(conn)
        return conn

    def _transaction(self, conn: sqlite3.Connection) -> SQLiteTransaction:
        return SQLiteTransaction(self, conn)

    def release(self, conn: sqlite3.Connection, discard: bool = False) -> None:
        with self._lock:
            self._connections.discard(conn)
        conn.close()

    def close(self) -> None:
        with self._lock:
            connections = list(self._connections)
            self._connections.clear()
        for conn in connections:
            conn.close()

    def describe(self) -> str:
        return f"sqlite://{self.path}"
