"""
지리 기준 데이터 마이그레이션 도구
SQLite 소스 DB의 국가/도시 데이터를 타겟 DB(PostgreSQL)로 마이그레이션
- 국가: 단일 트랜잭션 순차 처리
- 도시: bounded relay + 워커 풀 병렬 처리
"""

from geo_migration.migrator import Migrator, MigrationSummary

__all__ = ["Migrator", "MigrationSummary"]
