import psycopg2
import pytest

from geo_migration.config import TargetDBSettings
from geo_migration.db import PostgresTarget
from geo_migration.errors import TargetError
from geo_migration.models import Country
from geo_migration.statements import country_statement
from geo_migration.worker import InsertionWorker


class FakeCursor:
    def __init__(self, conn):
        self.conn = conn
        self.rowcount = -1

    def execute(self, sql, params=None):
        self.conn.log.append(sql)
        if params and self.conn.fail_on in params:
            raise psycopg2.IntegrityError("duplicate key value violates unique constraint")
        self.rowcount = 1 if sql.startswith("EXECUTE") else -1

    def close(self):
        pass


class FakeConnection:
    def __init__(self, fail_on=None):
        self.autocommit = False
        self.fail_on = fail_on
        self.log = []

    def cursor(self):
        return FakeCursor(self)


class FakePool:
    fail_on = None

    def __init__(self, minconn, maxconn, dsn):
        self.dsn = dsn
        self.maxconn = maxconn
        self.closed = False
        self.issued = []
        self.returned = []

    def getconn(self):
        conn = FakeConnection(self.fail_on)
        self.issued.append(conn)
        return conn

    def putconn(self, conn, close=False):
        self.returned.append((conn, close))

    def closeall(self):
        self.closed = True


@pytest.fixture
def fake_pool(monkeypatch):
    monkeypatch.setattr("geo_migration.db.postgres_target.ThreadedConnectionPool", FakePool)
    return FakePool


def test_from_settings_builds_dsn(fake_pool):
    settings = TargetDBSettings(host="db", port=5432, user="geo", password="pw", database="geo")

    target = PostgresTarget.from_settings(settings, maxconn=8)

    assert target._pool.maxconn == 8
    assert target.describe() == "postgres://db:5432/geo"
    target.close()
    assert target._pool.closed


def test_prepared_insert_with_savepoint_per_row(fake_pool, monkeypatch):
    monkeypatch.setattr(fake_pool, "fail_on", "XX")
    target = PostgresTarget("dbname=geo")
    records = [
        Country(name="A", iso_code="AA", lat=0, lng=0),
        Country(name="Dup", iso_code="XX", lat=0, lng=0),
    ]

    report = InsertionWorker(1, target, country_statement()).run(records)

    assert report.committed
    assert (report.inserted, report.failed) == (1, 1)
    [conn] = target._pool.issued
    assert conn.autocommit is True
    assert conn.log == [
        "BEGIN",
        "PREPARE insert_country (text, text, text, float8, float8) AS "
        "INSERT INTO countries (name, iso_code, flag, lat, lng) VALUES ($1, $2, $3, $4, $5)",
        "SAVEPOINT geo_row",
        "EXECUTE insert_country (%s, %s, %s, %s, %s)",
        "RELEASE SAVEPOINT geo_row",
        "SAVEPOINT geo_row",
        "EXECUTE insert_country (%s, %s, %s, %s, %s)",
        "ROLLBACK TO SAVEPOINT geo_row",
        "RELEASE SAVEPOINT geo_row",
        "COMMIT",
        "DEALLOCATE insert_country",
    ]
    assert target._pool.returned == [(conn, False)]


def test_connection_failure_is_fatal(monkeypatch):
    def refuse(minconn, maxconn, dsn):
        raise psycopg2.OperationalError("connection refused")

    monkeypatch.setattr("geo_migration.db.postgres_target.ThreadedConnectionPool", refuse)

    with pytest.raises(TargetError) as excinfo:
        PostgresTarget("host=nowhere")
    assert excinfo.value.stage == "connect"
