"""
Migration 설정 모듈
환경변수(.env)에서 소스/타겟 DB 연결 설정을 로드
YAML 파일에서 워커 수, 국가 누락 정책 등 실행 설정을 로드
"""

import os
from pathlib import Path
from typing import Literal

import yaml
from pydantic import AliasChoices, BaseModel, Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class SourceDBSettings(BaseSettings):
    """소스 DB 설정 (SQLite 파일)"""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        env_prefix="SOURCE_DB_",
        extra="ignore",
    )

    path: str = Field(default="./db.sqlite3")


class TargetDBSettings(BaseSettings):
    """타겟 DB 설정 (기본: PostgreSQL)"""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        env_prefix="TARGET_DB_",
        extra="ignore",
        populate_by_name=True,
    )

    driver: Literal["postgres", "sqlite"] = Field(default="postgres")
    # 접속 URL이 있으면 host/port 등은 무시
    url: str | None = Field(
        default=None,
        validation_alias=AliasChoices("TARGET_DB_URL", "DB_URL"),
    )
    host: str = Field(default="localhost")
    port: int = Field(default=5432)
    user: str = Field(default="postgres")
    password: str = Field(default="")
    database: str = Field(default="geo")
    # sqlite 드라이버 전용
    sqlite_path: str = Field(default="./target.sqlite3")
    busy_timeout: float = Field(default=60.0)


class MigrationSettings(BaseSettings):
    """마이그레이션 연결 설정"""

    source: SourceDBSettings = Field(default_factory=SourceDBSettings)
    target: TargetDBSettings = Field(default_factory=TargetDBSettings)


# ============================================================
# YAML 설정 모델
# ============================================================

class DatasetConfig(BaseModel):
    """데이터셋 테이블 매핑"""
    source_table: str
    target_table: str


class MigrationYAMLConfig(BaseModel):
    """YAML 마이그레이션 설정"""
    workers: int | None = Field(default=None, ge=1)  # 없으면 CPU 수 기준
    workers_per_cpu: int = Field(default=2, ge=1)
    missing_country: Literal["null", "reject"] = "null"
    progress: bool = True
    countries: DatasetConfig = Field(
        default_factory=lambda: DatasetConfig(source_table="countries", target_table="countries")
    )
    cities: DatasetConfig = Field(
        default_factory=lambda: DatasetConfig(source_table="cities", target_table="cities")
    )

    def resolve_workers(self, override: int | None = None) -> int:
        """도시 마이그레이션 워커 수 결정"""
        if override:
            return override
        if self.workers:
            return self.workers
        return self.workers_per_cpu * (os.cpu_count() or 1)

    @property
    def source_tables(self) -> dict[str, str]:
        return {
            "country": self.countries.source_table,
            "city": self.cities.source_table,
        }


def load_yaml_config(yaml_path: str | Path) -> MigrationYAMLConfig:
    """YAML 설정 파일 로드"""
    path = Path(yaml_path)
    if not path.exists():
        raise FileNotFoundError(f"설정 파일을 찾을 수 없습니다: {yaml_path}")

    with open(path, "r", encoding="utf-8") as f:
        data = yaml.safe_load(f)

    return MigrationYAMLConfig(**(data or {}))


def get_settings() -> MigrationSettings:
    """설정 로드"""
    return MigrationSettings()
