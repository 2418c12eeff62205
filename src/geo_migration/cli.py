#!/usr/bin/env python3
"""
지리 데이터 마이그레이션 CLI
- migrate country|city: 단일 데이터셋 마이그레이션
- run: 국가 -> 도시 순서로 전체 마이그레이션
"""

import sys
from contextlib import contextmanager
from pathlib import Path

import click
from dotenv import load_dotenv
from pydantic import ValidationError
from rich.console import Console

from geo_migration.config import MigrationYAMLConfig, get_settings, load_yaml_config
from geo_migration.db import SQLiteSource, create_target
from geo_migration.errors import MigrationError
from geo_migration.migrator import MigrationSummary, Migrator
from geo_migration.utils.logger import setup_logger

# .env 파일 로드
load_dotenv()

console = Console()

DATASET_LABELS = {"country": "국가", "city": "도시"}


def load_run_config(config_file: str | None, **overrides) -> MigrationYAMLConfig:
    """YAML 설정 로드 후 CLI 옵션으로 오버라이드"""
    try:
        config = load_yaml_config(config_file) if config_file else MigrationYAMLConfig()
    except (FileNotFoundError, ValidationError) as e:
        console.print(f"[red]설정 파일 오류: {e}[/red]")
        sys.exit(1)

    updates = {k: v for k, v in overrides.items() if v is not None}
    return config.model_copy(update=updates) if updates else config


@contextmanager
def open_stores(source_path: str | None, config: MigrationYAMLConfig, pool_size: int):
    """소스/타겟 DB 열기 (실패 시 종료 코드 1)"""
    settings = get_settings()
    try:
        source = SQLiteSource(source_path or settings.source.path, tables=config.source_tables)
    except MigrationError as e:
        console.print(f"[red]소스 DB 오류: {e}[/red]")
        sys.exit(1)

    try:
        target = create_target(settings.target, pool_size=pool_size)
    except MigrationError as e:
        source.close()
        console.print(f"[red]타겟 DB 오류: {e}[/red]")
        sys.exit(1)

    try:
        yield source, target
    finally:
        target.close()
        source.close()


def print_summary(summary: MigrationSummary):
    """결과 출력"""
    label = DATASET_LABELS[summary.dataset]

    if len(summary.workers) > 1:
        for r in summary.workers:
            if r.status == "success":
                status_icon = "[green]OK[/green]"
            elif r.status == "cancelled":
                status_icon = "[yellow]CN[/yellow]"
            else:
                status_icon = "[red]NG[/red]"
            console.print(f"  [{status_icon}] 워커 {r.worker_id}: {r.inserted}건 삽입")

    extras = []
    if summary.skipped:
        extras.append(f"디코딩 스킵 {summary.skipped}")
    if summary.rejected:
        extras.append(f"거부 {summary.rejected}")
    if summary.failed:
        extras.append(f"실패 {summary.failed}")
    if summary.lost:
        extras.append(f"미커밋 {summary.lost}")
    extra_info = f" ({', '.join(extras)})" if extras else ""

    console.print(f"{label} {summary.inserted}건 마이그레이션 완료{extra_info}")

    if summary.worker_errors:
        console.print("[red]오류 목록:[/red]")
        for r in summary.worker_errors:
            console.print(f"  - 워커 {r.worker_id} ({r.stage}): {r.error}")


def execute(migrator: Migrator, dataset: str, workers: int | None) -> MigrationSummary:
    """데이터셋 하나 마이그레이션 (치명적 오류 시 종료 코드 1)"""
    try:
        if dataset == "country":
            summary = migrator.migrate_countries()
        else:
            summary = migrator.migrate_cities(workers)
    except MigrationError as e:
        console.print(f"[red]{DATASET_LABELS[dataset]} 마이그레이션 실패: {e}[/red]")
        sys.exit(1)

    print_summary(summary)
    if summary.cancelled:
        console.print("[yellow]사용자 요청으로 중단되었습니다.[/yellow]")
        sys.exit(130)
    return summary


@click.group()
@click.option("--verbose", "-v", is_flag=True, help="상세 로그 출력")
@click.option("--log-dir", default="./logs", show_default=True, help="로그 파일 디렉토리")
@click.pass_context
def main(ctx, verbose, log_dir):
    """지리 기준 데이터(국가/도시) 마이그레이션 도구"""
    ctx.ensure_object(dict)
    ctx.obj["logger"] = setup_logger(verbose, log_dir=log_dir)


@main.command()
@click.option("--check", is_flag=True, help="소스/타겟 DB 연결 확인")
def show_config(check):
    """현재 DB 연결 설정 출력"""
    settings = get_settings()
    click.echo("현재 DB 연결 설정 (환경변수 기반):")
    click.echo("\n[소스 DB]")
    click.echo(f"  Path: {settings.source.path}")
    click.echo("\n[타겟 DB]")
    click.echo(f"  Driver: {settings.target.driver}")
    if settings.target.driver == "sqlite":
        click.echo(f"  Path: {settings.target.sqlite_path}")
    elif settings.target.url:
        click.echo("  URL: (설정됨)")
    else:
        click.echo(f"  Host: {settings.target.host}")
        click.echo(f"  Port: {settings.target.port}")
        click.echo(f"  User: {settings.target.user}")
        click.echo(f"  Database: {settings.target.database}")

    if check:
        check_connections(settings)


def check_connections(settings):
    """소스/타겟 DB 연결 확인 (실패 시 종료 코드 1)"""
    console.print("\n[bold]연결 확인 중...[/bold]\n")
    ok = True

    try:
        SQLiteSource(settings.source.path).close()
        console.print("[green]소스 DB 연결 성공[/green]")
    except MigrationError as e:
        ok = False
        console.print(f"[red]소스 DB 연결 실패:[/red] {e}")

    try:
        target = create_target(settings.target, pool_size=1)
    except MigrationError as e:
        ok = False
        console.print(f"[red]타겟 DB 연결 실패:[/red] {e}")
    else:
        try:
            if target.test_connection():
                console.print(f"[green]타겟 DB 연결 성공[/green] ({target.describe()})")
            else:
                ok = False
                console.print(f"[red]타겟 DB 연결 실패[/red] ({target.describe()})")
        finally:
            target.close()

    if not ok:
        sys.exit(1)


def run_options(f):
    """migrate/run 공통 옵션"""
    options = [
        click.option("--config", "config_file", type=click.Path(exists=True), help="YAML 설정 파일"),
        click.option("--source", "source_path", default=None, help="소스 SQLite 파일 (기본: SOURCE_DB_PATH)"),
        click.option("--workers", type=click.IntRange(min=1), default=None, help="도시 워커 수 (기본: CPU 수 x 2)"),
        click.option(
            "--missing-country",
            type=click.Choice(["null", "reject"]),
            default=None,
            help="국가가 없는 도시 처리 (null: NULL로 삽입, reject: 건너뜀)",
        ),
        click.option("--progress/--no-progress", default=None, help="진행률 표시"),
        click.option("--dry-run", is_flag=True, help="실제 삽입 없이 소스 row 수만 확인"),
    ]
    for option in reversed(options):
        f = option(f)
    return f


@main.command()
@click.argument("dataset", type=click.Choice(["country", "city"]))
@run_options
def migrate(dataset, config_file, source_path, workers, missing_country, progress, dry_run):
    """데이터셋 하나 마이그레이션

    예시:
      geo-migrate migrate country
      geo-migrate migrate city --workers 8
      geo-migrate migrate city --missing-country reject
    """
    config = load_run_config(
        config_file, workers=workers, missing_country=missing_country, progress=progress
    )
    num_workers = config.resolve_workers()

    with open_stores(source_path, config, pool_size=num_workers) as (source, target):
        migrator = Migrator(source, target, config, show_progress=config.progress)
        if dry_run:
            count = migrator.dry_run(dataset)
            console.print(f"[yellow][DRY-RUN][/yellow] {DATASET_LABELS[dataset]} {count}건 마이그레이션 예정")
            return
        console.print(f"타겟: [cyan]{target.describe()}[/cyan]")
        execute(migrator, dataset, num_workers)


@main.command()
@run_options
def run(config_file, source_path, workers, missing_country, progress, dry_run):
    """국가 -> 도시 순서로 전체 마이그레이션

    예시:
      geo-migrate run --config migration.yaml
    """
    config = load_run_config(
        config_file, workers=workers, missing_country=missing_country, progress=progress
    )
    num_workers = config.resolve_workers()

    with open_stores(source_path, config, pool_size=num_workers) as (source, target):
        migrator = Migrator(source, target, config, show_progress=config.progress)
        for dataset in ("country", "city"):
            if dry_run:
                count = migrator.dry_run(dataset)
                console.print(f"[yellow][DRY-RUN][/yellow] {DATASET_LABELS[dataset]} {count}건 마이그레이션 예정")
                continue
            execute(migrator, dataset, num_workers)


@main.command()
def init():
    """예시 YAML 설정 파일 생성"""
    example_yaml = """# 지리 데이터 마이그레이션 설정 파일
# 사용법: geo-migrate run --config migration.yaml

# 도시 워커 수 (없으면 CPU 수 x workers_per_cpu)
# workers: 8
workers_per_cpu: 2

# 국가가 없는 도시 처리
#   null   - country_id를 NULL로 삽입
#   reject - 삽입하지 않고 거부 건수로 집계
missing_country: "null"

# 진행률 표시
progress: true

# 테이블 매핑
countries:
  source_table: countries
  target_table: countries

cities:
  source_table: cities
  target_table: cities
"""

    output_path = Path("migration.yaml")
    if output_path.exists():
        if not click.confirm(f"'{output_path}'가 이미 존재합니다. 덮어쓰시겠습니까?"):
            click.echo("취소되었습니다.")
            return

    output_path.write_text(example_yaml, encoding="utf-8")
    console.print(f"예시 설정 파일 생성: [cyan]{output_path}[/cyan]")
    console.print("\n파일을 편집한 후 다음 명령어로 실행하세요:")
    console.print("  [green]geo-migrate run --config migration.yaml[/green]")


if __name__ == "__main__":
    main()
