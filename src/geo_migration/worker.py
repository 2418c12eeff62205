"""
Insertion worker
워커 하나가 타겟 트랜잭션 하나와 prepared INSERT 하나를 소유하고
입력이 소진될 때까지 레코드를 삽입한 뒤 커밋한다.
"""

import logging
import threading
from dataclasses import dataclass
from enum import Enum
from typing import Iterable, Literal

from geo_migration.db.base import TargetStore
from geo_migration.errors import RowError, TargetError
from geo_migration.models import GeoRecord
from geo_migration.statements import InsertStatement

logger = logging.getLogger(__name__)


class RowOutcome(str, Enum):
    """row 단위 처리 결과"""
    INSERTED = "inserted"
    REJECTED = "rejected"  # 국가 누락 (missing_country=reject)
    FAILED = "failed"


@dataclass
class WorkerReport:
    """워커 처리 결과"""
    worker_id: int
    status: Literal["success", "error", "cancelled"] = "success"
    inserted: int = 0
    rejected: int = 0
    failed: int = 0
    committed: bool = False
    stage: str | None = None  # 실패 단계 (begin, prepare, insert, commit)
    error: str | None = None

    @property
    def processed(self) -> int:
        return self.inserted + self.rejected + self.failed

    @property
    def committed_rows(self) -> int:
        """커밋까지 완료된 삽입 건수"""
        return self.inserted if self.committed else 0

    def add(self, outcome: RowOutcome) -> None:
        if outcome is RowOutcome.INSERTED:
            self.inserted += 1
        elif outcome is RowOutcome.REJECTED:
            self.rejected += 1
        else:
            self.failed += 1

    def fail(self, error: TargetError) -> "WorkerReport":
        self.status = "error"
        self.stage = error.stage
        self.error = str(error)
        return self


class InsertionWorker:
    """단일 트랜잭션 삽입 워커"""

    def __init__(
        self,
        worker_id: int,
        target: TargetStore,
        statement: InsertStatement,
        cancel_event: threading.Event | None = None,
    ):
        self.worker_id = worker_id
        self.target = target
        self.statement = statement
        self.cancel_event = cancel_event

    @property
    def cancelled(self) -> bool:
        return self.cancel_event is not None and self.cancel_event.is_set()

    def run(self, records: Iterable[GeoRecord]) -> WorkerReport:
        """입력이 소진될 때까지 삽입 후 커밋

        records는 relay 또는 소스 스트림. 트랜잭션 시작/prepare/커밋 실패는
        이 워커만 중단하며 예외를 올리지 않는다.
        """
        report = WorkerReport(worker_id=self.worker_id)
        label = self.statement.record_type.label

        try:
            tx = self.target.begin()
        except TargetError as e:
            logger.error("워커 %d 트랜잭션 시작 실패: %s", self.worker_id, e)
            return report.fail(e)

        try:
            try:
                tx.prepare(self.statement)
            except TargetError as e:
                logger.error("워커 %d INSERT 준비 실패: %s", self.worker_id, e)
                return report.fail(e)

            for record in records:
                if self.cancelled:
                    break
                try:
                    report.add(self._insert(tx, record))
                except TargetError as e:
                    logger.error("워커 %d 트랜잭션 오류, 중단: %s", self.worker_id, e)
                    return report.fail(e)

            if self.cancelled:
                tx.rollback()
                report.status = "cancelled"
                logger.warning(
                    "워커 %d 취소: %d건 롤백", self.worker_id, report.inserted
                )
                return report

            try:
                tx.commit()
            except TargetError as e:
                logger.error("워커 %d 커밋 실패: %s", self.worker_id, e)
                return report.fail(e)
            report.committed = True
        finally:
            tx.close()

        logger.info(
            "워커 %d 완료: %s %d건 삽입 (거부 %d, 실패 %d)",
            self.worker_id,
            label,
            report.inserted,
            report.rejected,
            report.failed,
        )
        return report

    def _insert(self, tx, record: GeoRecord) -> RowOutcome:
        try:
            rows = tx.execute(self.statement, record)
        except RowError as e:
            logger.error("%s 삽입 실패 %s: %s", record.label, record.describe(), e)
            return RowOutcome.FAILED

        if rows == 0:
            logger.warning("%s 삽입 거부 %s: 국가 없음", record.label, record.describe())
            return RowOutcome.REJECTED
        return RowOutcome.INSERTED
