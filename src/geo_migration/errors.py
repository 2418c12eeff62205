"""마이그레이션 예외 정의"""


class MigrationError(Exception):
    """마이그레이션 기본 예외"""


class SourceError(MigrationError):
    """소스 DB 열기/조회 실패"""


class TargetError(MigrationError):
    """타겟 DB 연결, 트랜잭션, prepare, commit 실패

    Attributes:
        stage: 실패한 단계 (connect, begin, prepare, commit)
    """

    def __init__(self, message: str, stage: str = "connect"):
        super().__init__(message)
        self.stage = stage


class RelayClosedError(MigrationError):
    """닫혔거나 취소된 relay에 대한 put/get"""


class RowError(MigrationError):
    """단일 row 삽입 실패 (savepoint 롤백 후 발생)"""
