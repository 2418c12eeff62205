"""DB 모듈"""

from geo_migration.db.base import TargetStore, TargetTransaction
from geo_migration.db.postgres_target import PostgresTarget
from geo_migration.db.sqlite_source import RecordStream, SQLiteSource
from geo_migration.db.sqlite_target import SQLiteTarget

__all__ = [
    "PostgresTarget",
    "RecordStream",
    "SQLiteSource",
    "SQLiteTarget",
    "TargetStore",
    "TargetTransaction",
    "create_target",
]


def create_target(settings, pool_size: int = 10) -> TargetStore:
    """설정의 driver에 맞는 타겟 DB 생성"""
    if settings.driver == "sqlite":
        return SQLiteTarget(settings.sqlite_path, busy_timeout=settings.busy_timeout)
    return PostgresTarget.from_settings(settings, maxconn=pool_size)
