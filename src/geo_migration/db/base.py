"""
타겟 DB 추상화
워커마다 독립 커넥션 + 트랜잭션을 하나씩 소유하고,
row 단위 실패는 savepoint로 격리한다.
"""

import logging
from abc import ABC, abstractmethod
from typing import Any

from geo_migration.errors import RowError, TargetError
from geo_migration.models import GeoRecord
from geo_migration.statements import InsertStatement

logger = logging.getLogger(__name__)

SAVEPOINT = "geo_row"


class TargetTransaction(ABC):
    """DB-API 커넥션 위의 명시적 트랜잭션

    BEGIN/COMMIT/ROLLBACK/SAVEPOINT 는 SQL로 직접 실행하므로
    커넥션은 autocommit 상태로 넘겨받는다.
    """

    begin_sql = "BEGIN"

    def __init__(self, store: "TargetStore", conn: Any):
        self.store = store
        self.conn = conn
        self.cursor = conn.cursor()
        self.active = False
        self._broken = False

    @property
    @abstractmethod
    def driver_errors(self) -> tuple[type[BaseException], ...]:
        """드라이버 예외 클래스"""

    @abstractmethod
    def prepare(self, statement: InsertStatement) -> None:
        """INSERT 문 준비 (트랜잭션당 1회)"""

    @abstractmethod
    def _execute_prepared(self, statement: InsertStatement, record: GeoRecord) -> int:
        """준비된 INSERT 실행 후 영향 row 수 반환"""

    def _run(self, sql: str, stage: str) -> None:
        try:
            self.cursor.execute(sql)
        except self.driver_errors as e:
            self._broken = True
            raise TargetError(f"{stage} 실패: {e}", stage=stage) from e

    def begin(self) -> None:
        self._run(self.begin_sql, stage="begin")
        self.active = True

    def execute(self, statement: InsertStatement, record: GeoRecord) -> int:
        """savepoint 안에서 INSERT 실행

        row 오류는 savepoint로 롤백한 뒤 RowError로 올리며,
        트랜잭션 자체는 계속 사용할 수 있다.
        """
        self._run(f"SAVEPOINT {SAVEPOINT}", stage="insert")
        try:
            rows = self._execute_prepared(statement, record)
        except self.driver_errors as e:
            self._run(f"ROLLBACK TO SAVEPOINT {SAVEPOINT}", stage="insert")
            self._run(f"RELEASE SAVEPOINT {SAVEPOINT}", stage="insert")
            raise RowError(str(e).strip()) from e
        self._run(f"RELEASE SAVEPOINT {SAVEPOINT}", stage="insert")
        return rows

    def commit(self) -> None:
        self._run("COMMIT", stage="commit")
        self.active = False

    def rollback(self) -> None:
        if not self.active:
            return
        self.active = False
        try:
            self.cursor.execute("ROLLBACK")
        except self.driver_errors as e:
            self._broken = True
            logger.warning("롤백 실패 (커넥션 폐기): %s", e)

    def _cleanup(self) -> None:
        """커넥션 반납 전 세션 상태 정리"""

    def close(self) -> None:
        """미완료 트랜잭션 롤백 후 커넥션 반납"""
        self.rollback()
        if not self._broken:
            self._cleanup()
        try:
            self.cursor.close()
        except self.driver_errors as e:
            self._broken = True
            logger.debug("커서 종료 실패: %s", e)
        self.store.release(self.conn, discard=self._broken)


class TargetStore(ABC):
    """타겟 DB (워커별 트랜잭션 제공)"""

    @abstractmethod
    def _acquire(self) -> Any:
        """autocommit 커넥션 획득"""

    @abstractmethod
    def _transaction(self, conn: Any) -> TargetTransaction:
        """커넥션에 대한 트랜잭션 객체 생성"""

    @abstractmethod
    def release(self, conn: Any, discard: bool = False) -> None:
        """커넥션 반납 (discard=True면 닫고 버림)"""

    @abstractmethod
    def close(self) -> None:
        """전체 커넥션 정리"""

    @abstractmethod
    def describe(self) -> str:
        """로그 표시용 접속 정보"""

    def begin(self) -> TargetTransaction:
        """커넥션을 획득하고 트랜잭션 시작"""
        conn = self._acquire()
        tx = self._transaction(conn)
        try:
            tx.begin()
        except TargetError:
            self.release(conn, discard=True)
            raise
        return tx

    def test_connection(self) -> bool:
        """연결 테스트"""
        try:
            tx = self.begin()
        except TargetError:
            return False
        tx.close()
        return True
