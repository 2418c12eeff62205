"""
국가/도시 마이그레이션 오케스트레이터
- 국가: 소스 스트림을 워커 하나가 단일 트랜잭션으로 순차 삽입
- 도시: bounded relay + 워커 풀, 생산자 스레드가 소스를 relay로 전달
"""

import logging
import threading
from concurrent.futures import Future, ThreadPoolExecutor, as_completed
from contextlib import nullcontext
from dataclasses import dataclass, field
from enum import Enum

from rich.console import Console
from rich.progress import (
    BarColumn,
    MofNCompleteColumn,
    Progress,
    SpinnerColumn,
    TaskProgressColumn,
    TextColumn,
    TimeElapsedColumn,
)

from geo_migration.config import MigrationYAMLConfig
from geo_migration.db.base import TargetStore
from geo_migration.db.sqlite_source import RecordStream, SQLiteSource
from geo_migration.errors import RelayClosedError, SourceError, TargetError
from geo_migration.relay import BoundedRelay
from geo_migration.statements import city_statement, country_statement
from geo_migration.worker import InsertionWorker, WorkerReport

logger = logging.getLogger(__name__)
console = Console()


class RunState(str, Enum):
    """마이그레이션 실행 상태"""
    IDLE = "idle"
    RUNNING = "running"  # 생산 + 소비 진행 중
    DRAINING = "draining"  # 생산 완료, relay 소진 중
    ALL_WORKERS_DONE = "all_workers_done"
    REPORTED = "reported"


@dataclass
class MigrationSummary:
    """데이터셋 마이그레이션 요약"""
    dataset: str
    workers: list[WorkerReport] = field(default_factory=list)
    produced: int = 0  # relay(또는 워커)로 전달된 레코드 수
    skipped: int = 0  # 소스 디코딩 실패
    undelivered: int = 0  # 취소로 relay에서 버려진 레코드 수
    source_error: str | None = None
    cancelled: bool = False
    state: RunState = RunState.IDLE

    @property
    def inserted(self) -> int:
        """커밋된 삽입 건수"""
        return sum(r.committed_rows for r in self.workers)

    @property
    def processed(self) -> int:
        return sum(r.processed for r in self.workers)

    @property
    def failed(self) -> int:
        return sum(r.failed for r in self.workers)

    @property
    def rejected(self) -> int:
        return sum(r.rejected for r in self.workers)

    @property
    def lost(self) -> int:
        """처리했지만 커밋되지 못한 삽입 건수"""
        return sum(r.inserted for r in self.workers if not r.committed)

    @property
    def worker_errors(self) -> list[WorkerReport]:
        return [r for r in self.workers if r.status == "error"]


class Migrator:
    """국가/도시 마이그레이터

    소스/타겟 핸들은 호출자가 열고 닫는다.
    """

    def __init__(
        self,
        source: SQLiteSource,
        target: TargetStore,
        config: MigrationYAMLConfig | None = None,
        show_progress: bool = False,
    ):
        self.source = source
        self.target = target
        self.config = config or MigrationYAMLConfig()
        self.show_progress = show_progress
        self.cancel_event = threading.Event()

    def _progress(self) -> Progress:
        return Progress(
            SpinnerColumn(),
            TextColumn("[bold]{task.description}"),
            BarColumn(),
            MofNCompleteColumn(),
            TaskProgressColumn(),
            TimeElapsedColumn(),
            console=console,
            transient=True,
            expand=False,
        )

    def dry_run(self, kind: str) -> int:
        """소스 row 수만 조회"""
        return self.source.count(kind)

    def migrate_countries(self) -> MigrationSummary:
        """국가 마이그레이션 (단일 트랜잭션 순차 처리)

        트랜잭션 시작/prepare/커밋 실패는 TargetError로 올린다.
        """
        summary = MigrationSummary(dataset="country")
        statement = country_statement(self.config.countries.target_table)
        stream = self.source.countries()
        summary.state = RunState.RUNNING

        worker = InsertionWorker(1, self.target, statement)
        report = worker.run(self._counted(stream, summary))
        summary.workers.append(report)
        summary.skipped = stream.skipped
        summary.state = RunState.ALL_WORKERS_DONE

        if report.status == "error":
            raise TargetError(f"국가 마이그레이션 중단 ({report.stage}): {report.error}", stage=report.stage)

        self._report(summary)
        return summary

    def _counted(self, stream: RecordStream, summary: MigrationSummary):
        for record in stream:
            summary.produced += 1
            yield record

    def migrate_cities(self, workers: int | None = None) -> MigrationSummary:
        """도시 마이그레이션 (워커 풀 병렬 처리)

        모든 워커가 반환하면 성공/실패와 무관하게 완료된다.
        """
        num_workers = self.config.resolve_workers(workers)
        statement = city_statement(
            self.config.cities.target_table,
            country_table=self.config.countries.target_table,
            missing_country=self.config.missing_country,
        )
        summary = MigrationSummary(dataset="city")
        relay: BoundedRelay = BoundedRelay(capacity=2 * num_workers)

        # 소스 쿼리 실패는 워커 시작 전에 SourceError로 올라간다
        stream = self.source.cities()
        total = self.source.count("city") if self.show_progress else None

        logger.info("도시 마이그레이션 시작: 워커 %d개, relay 용량 %d", num_workers, relay.capacity)
        summary.state = RunState.RUNNING

        progress = self._progress() if self.show_progress else None
        with progress if progress is not None else nullcontext():
            task_id = None
            if progress is not None:
                task_id = progress.add_task("[cyan]도시", total=total)

            producer = threading.Thread(
                target=self._produce,
                args=(stream, relay, summary, progress, task_id),
                name="geo-producer",
                daemon=True,
            )

            with ThreadPoolExecutor(max_workers=num_workers, thread_name_prefix="geo-worker") as executor:
                futures = [
                    executor.submit(
                        InsertionWorker(i, self.target, statement, self.cancel_event).run,
                        relay,
                    )
                    for i in range(1, num_workers + 1)
                ]
                producer.start()

                try:
                    summary.workers = self._wait(futures)
                except KeyboardInterrupt:
                    logger.warning("중단 요청: 워커 취소 중")
                    summary.cancelled = True
                    self.cancel(relay)
                    summary.workers = self._wait(futures)

            summary.state = RunState.ALL_WORKERS_DONE

            # 모든 워커가 먼저 중단되면 생산자가 put에서 대기하므로 relay를 취소
            if producer.is_alive():
                relay.cancel()
            producer.join()
            summary.undelivered = relay.dropped

        summary.cancelled = self.cancel_event.is_set()
        summary.workers.sort(key=lambda r: r.worker_id)
        summary.skipped = stream.skipped
        self._report(summary)
        return summary

    def cancel(self, relay: BoundedRelay | None = None) -> int:
        """진행 중인 마이그레이션 취소"""
        self.cancel_event.set()
        if relay is not None:
            return relay.cancel()
        return 0

    @staticmethod
    def _wait(futures: list[Future]) -> list[WorkerReport]:
        return [future.result() for future in as_completed(futures)]

    def _produce(
        self,
        stream: RecordStream,
        relay: BoundedRelay,
        summary: MigrationSummary,
        progress: Progress | None,
        task_id,
    ) -> None:
        """소스 레코드를 relay로 전달하고 마지막에 relay를 닫는다"""
        try:
            for record in stream:
                if self.cancel_event.is_set():
                    relay.cancel()
                    return
                relay.put(record)
                summary.produced += 1
                if progress is not None:
                    progress.advance(task_id)
        except RelayClosedError:
            logger.warning("relay 취소됨: 생산 중단 (%d건 전달)", summary.produced)
            return
        except SourceError as e:
            # 이미 전달된 레코드는 워커가 커밋하도록 relay는 정상 종료
            logger.error("소스 읽기 실패: %s", e)
            summary.source_error = str(e)

        summary.state = RunState.DRAINING
        relay.close()

    def _report(self, summary: MigrationSummary) -> None:
        for report in summary.worker_errors:
            logger.error(
                "워커 %d 실패 (%s): %s", report.worker_id, report.stage, report.error
            )
        if summary.skipped:
            logger.warning("디코딩 실패로 건너뛴 row: %d건", summary.skipped)
        logger.info(
            "%s 마이그레이션 완료: %d건 삽입 (처리 %d, 거부 %d, 실패 %d)",
            summary.dataset,
            summary.inserted,
            summary.processed,
            summary.rejected,
            summary.failed,
        )
        summary.state = RunState.REPORTED
