"""
타겟 INSERT 문 정의
데이터셋별 컬럼 매핑을 placeholder 템플릿으로 보관하고
타겟 드라이버의 파라미터 스타일로 렌더링
"""

from dataclasses import dataclass
from typing import Literal

from geo_migration.models import City, Country, GeoRecord

MissingCountryPolicy = Literal["null", "reject"]


@dataclass(frozen=True)
class InsertStatement:
    """파라미터화된 INSERT 문

    template 안의 {field} 는 레코드 필드 이름이며,
    fields 순서가 위치 파라미터($1, $2, ...) 순서가 된다.
    """

    name: str
    template: str
    fields: tuple[str, ...]
    types: tuple[str, ...]  # PostgreSQL PREPARE 파라미터 타입
    record_type: type[GeoRecord]

    def render(self, style: Literal["numeric", "named"]) -> str:
        """드라이버 파라미터 스타일로 SQL 생성

        - numeric: PostgreSQL PREPARE 용 ($1, $2, ...)
        - named: sqlite3 용 (:name, :lat, ...)
        """
        if style == "numeric":
            marks = {f: f"${i}" for i, f in enumerate(self.fields, 1)}
        else:
            marks = {f: f":{f}" for f in self.fields}
        return self.template.format(**marks)

    def values(self, record: GeoRecord) -> tuple:
        """위치 파라미터 값"""
        return tuple(getattr(record, f) for f in self.fields)

    def named_values(self, record: GeoRecord) -> dict:
        """이름 파라미터 값"""
        return {f: getattr(record, f) for f in self.fields}


def country_statement(table: str = "countries") -> InsertStatement:
    """국가 INSERT"""
    return InsertStatement(
        name="insert_country",
        template=(
            f"INSERT INTO {table} (name, iso_code, flag, lat, lng) "
            "VALUES ({name}, {iso_code}, {flag}, {lat}, {lng})"
        ),
        fields=("name", "iso_code", "flag", "lat", "lng"),
        types=("text", "text", "text", "float8", "float8"),
        record_type=Country,
    )


def city_statement(
    table: str = "cities",
    country_table: str = "countries",
    missing_country: MissingCountryPolicy = "null",
) -> InsertStatement:
    """도시 INSERT (country_id는 같은 문장 안에서 ISO 코드로 조회)

    missing_country:
        null   - 국가가 없으면 country_id NULL로 삽입
        reject - 국가가 없으면 삽입하지 않음 (영향 row 0)
    """
    columns = "name, country_iso_code, lat, lng, country_id"
    if missing_country == "reject":
        template = (
            f"INSERT INTO {table} ({columns}) "
            "SELECT {name}, {country_iso_code}, {lat}, {lng}, c.id "
            f"FROM {country_table} c "
            "WHERE c.iso_code = {country_iso_code} LIMIT 1"
        )
    elif missing_country == "null":
        template = (
            f"INSERT INTO {table} ({columns}) "
            "VALUES ({name}, {country_iso_code}, {lat}, {lng}, "
            f"(SELECT id FROM {country_table} "
            "WHERE iso_code = {country_iso_code}))"
        )
    else:
        raise ValueError(f"알 수 없는 missing_country 정책: {missing_country}")

    return InsertStatement(
        name="insert_city",
        template=template,
        fields=("name", "country_iso_code", "lat", "lng"),
        types=("text", "text", "float8", "float8"),
        record_type=City,
    )
