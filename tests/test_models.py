import pytest
from pydantic import ValidationError

from geo_migration.models import City, Country
from geo_migration.statements import city_statement, country_statement


def test_country_null_coordinates_and_flag_decode_to_defaults():
    country = Country.model_validate(
        {"id": 1, "name": "Testland", "iso_code": "TL", "flag": None, "lat": None, "lng": None}
    )
    assert country.flag == ""
    assert country.lat == 0.0
    assert country.lng == 0.0
    assert country.describe() == "Testland (TL)"


@pytest.mark.parametrize(
    "row",
    [
        {"name": None, "iso_code": "TL", "flag": "", "lat": 1.0, "lng": 2.0},
        {"name": "Testland", "iso_code": "", "flag": "", "lat": 1.0, "lng": 2.0},
        {"name": "Testland", "iso_code": "TL", "flag": "", "lat": "north", "lng": 2.0},
    ],
)
def test_country_decode_failures(row):
    with pytest.raises(ValidationError):
        Country.model_validate(row)


def test_records_are_immutable():
    city = City(name="Testville", country_iso_code="TL", lat=1.1, lng=2.1)
    with pytest.raises(ValidationError):
        city.name = "Other"


def test_city_describe_names_parent_country():
    city = City(name="Testville", country_iso_code="TL")
    assert city.describe() == "Testville (국가 TL)"


def test_utf8_bytes_decode_and_invalid_bytes_fail():
    city = City.model_validate({"name": "Zürich".encode(), "country_iso_code": b"CH"})
    assert city.name == "Zürich"
    with pytest.raises(ValidationError):
        City.model_validate({"name": b"\xff", "country_iso_code": b"CH"})


def test_country_statement_renders_for_both_param_styles():
    statement = country_statement()
    assert statement.render("numeric") == (
        "INSERT INTO countries (name, iso_code, flag, lat, lng) VALUES ($1, $2, $3, $4, $5)"
    )
    assert ":iso_code" in statement.render("named")

    country = Country(name="Testland", iso_code="TL", flag="F", lat=1.0, lng=2.0)
    assert statement.values(country) == ("Testland", "TL", "F", 1.0, 2.0)
    assert len(statement.types) == len(statement.fields)


def test_city_statement_looks_up_country_in_same_statement():
    sql = city_statement().render("numeric")
    assert "(SELECT id FROM countries WHERE iso_code = $2)" in sql
    assert sql.startswith("INSERT INTO cities (name, country_iso_code, lat, lng, country_id)")


def test_city_statement_reject_policy_inserts_only_when_country_exists():
    sql = city_statement(missing_country="reject").render("named")
    assert "FROM countries c WHERE c.iso_code = :country_iso_code" in sql
    assert "VALUES" not in sql


def test_city_statement_unknown_policy():
    with pytest.raises(ValueError):
        city_statement(missing_country="ignore")
