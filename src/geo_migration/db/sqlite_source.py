"""
SQLite 소스 DB 리더
국가/도시 테이블을 순차 조회하여 레코드 스트림으로 제공
"""

import logging
import sqlite3
from pathlib import Path
from typing import Iterator

from pydantic import ValidationError

from geo_migration.errors import SourceError
from geo_migration.models import RECORD_TYPES, GeoRecord

logger = logging.getLogger(__name__)

# 소스 컬럼 -> 레코드 필드 매핑 (ORDER BY 없음)
SOURCE_QUERIES = {
    "country": (
        "SELECT id, name, iso2 AS iso_code, emoji AS flag, "
        "latitude AS lat, longitude AS lng FROM {table}"
    ),
    "city": (
        "SELECT id, name, country_code AS country_iso_code, "
        "latitude AS lat, longitude AS lng FROM {table}"
    ),
}

DEFAULT_TABLES = {"country": "countries", "city": "cities"}


def _display(value):
    """로그 출력용 값 (잘못된 UTF-8 바이트는 치환)"""
    if isinstance(value, bytes):
        return value.decode("utf-8", errors="replace")
    return value


def _format_errors(error: ValidationError) -> str:
    return "; ".join(
        f"{'.'.join(str(loc) for loc in err['loc'])}: {err['msg']}" for err in error.errors()
    )


class RecordStream:
    """한 번만 순회 가능한 레코드 스트림

    디코딩 실패 row는 로그를 남기고 건너뛴다 (skipped 카운트).
    """

    def __init__(self, cursor: sqlite3.Cursor, record_type: type[GeoRecord]):
        self._cursor = cursor
        self.record_type = record_type
        self.skipped = 0
        self._started = False

    def __iter__(self) -> Iterator[GeoRecord]:
        if self._started:
            raise SourceError("레코드 스트림은 한 번만 순회할 수 있습니다")
        self._started = True
        return self._generate()

    def _decode(self, row: sqlite3.Row) -> GeoRecord | None:
        try:
            return self.record_type.model_validate(dict(row))
        except ValidationError as e:
            self.skipped += 1
            logger.warning(
                "%s row 디코딩 실패, 건너뜀 (id=%s, name=%r): %s",
                self.record_type.label,
                _display(row["id"]),
                _display(row["name"]),
                _format_errors(e),
            )
            return None

    def _generate(self) -> Iterator[GeoRecord]:
        try:
            for row in self._cursor:
                record = self._decode(row)
                if record is not None:
                    yield record
        except sqlite3.Error as e:
            raise SourceError(f"소스 조회 중단: {e}") from e
        finally:
            self._cursor.close()


class SQLiteSource:
    """SQLite 소스 DB (읽기 전용)"""

    def __init__(self, path: str | Path, tables: dict[str, str] | None = None):
        self.path = Path(path)
        self.tables = {**DEFAULT_TABLES, **(tables or {})}
        if not self.path.exists():
            raise SourceError(f"소스 DB 파일이 없습니다: {self.path}")
        try:
            self.conn = sqlite3.connect(
                f"{self.path.resolve().as_uri()}?mode=ro",
                uri=True,
                check_same_thread=False,
            )
        except sqlite3.Error as e:
            raise SourceError(f"소스 DB 열기 실패: {e}") from e
        self.conn.row_factory = sqlite3.Row
        # TEXT는 bytes로 받고 UTF-8 디코딩은 레코드 검증에서 처리 (실패 row만 건너뜀)
        self.conn.text_factory = bytes

    def records(self, kind: str) -> RecordStream:
        """데이터셋 레코드 스트림 (쿼리는 즉시 실행)"""
        if kind not in SOURCE_QUERIES:
            raise ValueError(f"알 수 없는 데이터셋: {kind}")
        query = SOURCE_QUERIES[kind].format(table=self.tables[kind])
        try:
            cursor = self.conn.execute(query)
        except sqlite3.Error as e:
            raise SourceError(f"소스 조회 실패 ({self.tables[kind]}): {e}") from e
        return RecordStream(cursor, RECORD_TYPES[kind])

    def countries(self) -> RecordStream:
        return self.records("country")

    def cities(self) -> RecordStream:
        return self.records("city")

    def count(self, kind: str) -> int:
        """소스 row 수 조회"""
        table = self.tables[kind]
        try:
            return self.conn.execute(f"SELECT COUNT(*) FROM {table}").fetchone()[0]
        except sqlite3.Error as e:
            raise SourceError(f"row count 조회 실패 ({table}): {e}") from e

    def close(self) -> None:
        self.conn.close()
