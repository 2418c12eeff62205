"""
마이그레이션 레코드 모델
소스 row를 디코딩한 불변 레코드 (국가/도시)
"""

from typing import Any, ClassVar

from pydantic import BaseModel, ConfigDict, Field, field_validator


class GeoRecord(BaseModel):
    """지리 레코드 공통 필드"""

    model_config = ConfigDict(frozen=True, extra="ignore")

    kind: ClassVar[str] = "record"
    label: ClassVar[str] = "레코드"

    id: int | None = None  # 소스 id (타겟에는 쓰지 않음)
    name: str = Field(min_length=1)
    lat: float = 0.0
    lng: float = 0.0

    @field_validator("lat", "lng", mode="before")
    @classmethod
    def _null_coordinate(cls, value: Any) -> Any:
        """NULL 좌표는 0으로 처리"""
        return 0.0 if value is None else value

    def describe(self) -> str:
        """로그 식별용 표시"""
        return self.name


class Country(GeoRecord):
    """국가"""

    kind: ClassVar[str] = "country"
    label: ClassVar[str] = "국가"

    iso_code: str = Field(min_length=1)
    flag: str = ""

    @field_validator("flag", mode="before")
    @classmethod
    def _null_flag(cls, value: Any) -> Any:
        return "" if value is None else value

    def describe(self) -> str:
        return f"{self.name} ({self.iso_code})"


class City(GeoRecord):
    """도시 (국가는 ISO 코드로 참조)"""

    kind: ClassVar[str] = "city"
    label: ClassVar[str] = "도시"

    country_iso_code: str = Field(min_length=1)

    def describe(self) -> str:
        return f"{self.name} (국가 {self.country_iso_code})"


RECORD_TYPES: dict[str, type[GeoRecord]] = {
    Country.kind: Country,
    City.kind: City,
}
