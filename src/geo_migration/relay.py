"""
Bounded relay
생산자 1개와 워커 N개 사이의 고정 용량 큐
- put: 가득 차면 대기 (backpressure)
- get: 비어 있으면 새 항목 또는 close 까지 대기
- close: 유일한 종료 신호, 남은 항목은 계속 꺼낼 수 있음
- cancel: 남은 항목을 버리고 대기 중인 모든 스레드를 깨움
"""

import threading
from collections import deque
from typing import Generic, Iterator, TypeVar

from geo_migration.errors import RelayClosedError

T = TypeVar("T")


class BoundedRelay(Generic[T]):
    """스레드 안전 bounded relay"""

    def __init__(self, capacity: int):
        if capacity < 1:
            raise ValueError(f"relay 용량은 1 이상이어야 합니다: {capacity}")
        self.capacity = capacity
        self._items: deque[T] = deque()
        self._cond = threading.Condition()
        self._closed = False
        self._cancelled = False
        self._dropped = 0

    @property
    def cancelled(self) -> bool:
        return self._cancelled

    @property
    def dropped(self) -> int:
        """취소로 버려진 항목 누계"""
        with self._cond:
            return self._dropped

    def put(self, item: T) -> None:
        """항목 추가 (가득 차면 대기)"""
        with self._cond:
            if self._closed:
                raise RelayClosedError("닫힌 relay에 추가할 수 없습니다")
            while len(self._items) >= self.capacity and not self._cancelled:
                self._cond.wait()
            if self._cancelled:
                raise RelayClosedError("취소된 relay에 추가할 수 없습니다")
            self._items.append(item)
            self._cond.notify_all()

    def get(self) -> T:
        """항목 꺼내기 (비어 있으면 대기)

        Raises:
            RelayClosedError: 닫히고 모두 소진되었거나 취소된 경우
        """
        with self._cond:
            while not self._items and not self._closed and not self._cancelled:
                self._cond.wait()
            if self._cancelled or not self._items:
                raise RelayClosedError("relay 종료")
            item = self._items.popleft()
            self._cond.notify_all()
            return item

    def close(self) -> None:
        """생산 종료 신호 (한 번만 호출)"""
        with self._cond:
            if self._closed:
                raise RelayClosedError("relay가 이미 닫혔습니다")
            self._closed = True
            self._cond.notify_all()

    def cancel(self) -> int:
        """남은 항목을 버리고 종료, 버린 항목 수 반환"""
        with self._cond:
            dropped = len(self._items)
            self._items.clear()
            self._dropped += dropped
            self._cancelled = True
            self._cond.notify_all()
            return dropped

    def __iter__(self) -> Iterator[T]:
        while True:
            try:
                item = self.get()
            except RelayClosedError:
                return
            yield item
