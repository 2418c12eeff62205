"""PostgreSQL 타겟 (psycopg2 ThreadedConnectionPool)"""

import logging

import psycopg2
import psycopg2.extensions
from psycopg2.pool import ThreadedConnectionPool

from geo_migration.config import TargetDBSettings
from geo_migration.db.base import TargetStore, TargetTransaction
from geo_migration.errors import TargetError
from geo_migration.models import GeoRecord
from geo_migration.statements import InsertStatement

logger = logging.getLogger(__name__)


class PostgresTransaction(TargetTransaction):
    """서버 측 PREPARE/EXECUTE 기반 트랜잭션"""

    driver_errors = (psycopg2.Error,)

    def __init__(self, store: "PostgresTarget", conn):
        super().__init__(store, conn)
        self._prepared: list[str] = []

    def prepare(self, statement: InsertStatement) -> None:
        types = ", ".join(statement.types)
        self._run(
            f"PREPARE {statement.name} ({types}) AS {statement.render('numeric')}",
            stage="prepare",
        )
        self._prepared.append(statement.name)

    def _execute_prepared(self, statement: InsertStatement, record: GeoRecord) -> int:
        marks = ", ".join(["%s"] * len(statement.fields))
        self.cursor.execute(f"EXECUTE {statement.name} ({marks})", statement.values(record))
        return self.cursor.rowcount

    def _cleanup(self) -> None:
        # prepared statement는 세션 단위라 풀에 반납하기 전에 해제
        for name in self._prepared:
            try:
                self.cursor.execute(f"DEALLOCATE {name}")
            except psycopg2.Error as e:
                self._broken = True
                logger.warning("prepared statement 해제 실패 (%s): %s", name, e)
                break
        self._prepared.clear()


class PostgresTarget(TargetStore):
    """PostgreSQL 타겟 DB"""

    def __init__(self, dsn: str, maxconn: int = 10):
        self.dsn = dsn
        try:
            self._pool = ThreadedConnectionPool(1, max(maxconn, 1), dsn)
        except psycopg2.Error as e:
            raise TargetError(f"PostgreSQL 연결 실패: {e}", stage="connect") from e

    @classmethod
    def from_settings(cls, settings: TargetDBSettings, maxconn: int = 10) -> "PostgresTarget":
        """설정에서 인스턴스 생성"""
        if settings.url:
            dsn = settings.url
        else:
            dsn = psycopg2.extensions.make_dsn(
                host=settings.host,
                port=settings.port,
                user=settings.user,
                password=settings.password,
                dbname=settings.database,
            )
        return cls(dsn, maxconn=maxconn)

    def _acquire(self):
        try:
            conn = self._pool.getconn()
            conn.autocommit = True
        except psycopg2.Error as e:
            raise TargetError(f"커넥션 획득 실패: {e}", stage="begin") from e
        return conn

    def _transaction(self, conn) -> PostgresTransaction:
        return PostgresTransaction(self, conn)

    def release(self, conn, discard: bool = False) -> None:
        self._pool.putconn(conn, close=discard)

    def close(self) -> None:
        if not self._pool.closed:
            self._pool.closeall()

    def describe(self) -> str:
        params = psycopg2.extensions.parse_dsn(self.dsn)
        host = params.get("host", "localhost")
        port = params.get("port", "5432")
        return f"postgres://{host}:{port}/{params.get('dbname', '')}"
