import logging
import sqlite3

import pytest

from geo_migration.db import SQLiteSource, SQLiteTarget

SOURCE_SCHEMA = """
CREATE TABLE countries (
    id INTEGER PRIMARY KEY,
    name TEXT,
    iso2 TEXT,
    emoji TEXT,
    latitude REAL,
    longitude REAL
);
CREATE TABLE cities (
    id INTEGER PRIMARY KEY,
    name TEXT,
    country_code TEXT,
    latitude REAL,
    longitude REAL
);
"""

TARGET_SCHEMA = """
CREATE TABLE countries (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    name TEXT NOT NULL,
    iso_code TEXT {unique},
    flag TEXT,
    lat REAL,
    lng REAL
);
CREATE TABLE cities (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    name TEXT NOT NULL,
    country_iso_code TEXT,
    lat REAL,
    lng REAL,
    country_id INTEGER REFERENCES countries (id)
);
"""


def build_source(path, countries=(), cities=()):
    conn = sqlite3.connect(path)
    conn.executescript(SOURCE_SCHEMA)
    conn.executemany(
        "INSERT INTO countries (name, iso2, emoji, latitude, longitude) VALUES (?, ?, ?, ?, ?)",
        countries,
    )
    conn.executemany(
        "INSERT INTO cities (name, country_code, latitude, longitude) VALUES (?, ?, ?, ?)",
        cities,
    )
    conn.commit()
    conn.close()
    return path


def build_target(path, unique=True):
    conn = sqlite3.connect(path)
    conn.executescript(TARGET_SCHEMA.format(unique="UNIQUE" if unique else ""))
    conn.commit()
    conn.close()
    return path


def fetch(path, sql, params=()):
    conn = sqlite3.connect(path)
    try:
        return conn.execute(sql, params).fetchall()
    finally:
        conn.close()


@pytest.fixture
def make_source(tmp_path):
    """국가/도시 row로 소스 DB 생성"""
    opened = []

    def _make(countries=(), cities=()):
        path = build_source(tmp_path / f"source_{len(opened)}.sqlite3", countries, cities)
        source = SQLiteSource(path)
        opened.append(source)
        return source

    yield _make
    for source in opened:
        source.close()


@pytest.fixture
def target_path(tmp_path):
    return build_target(tmp_path / "target.sqlite3")


@pytest.fixture
def target(target_path):
    store = SQLiteTarget(target_path, busy_timeout=30.0)
    yield store
    store.close()


@pytest.fixture
def geo_caplog(caplog):
    caplog.set_level(logging.DEBUG, logger="geo_migration")
    return caplog


@pytest.fixture
def make_source_path(tmp_path):
    """소스 DB 파일 경로만 생성 (CLI 테스트용)"""

    def _make(countries=(), cities=()):
        return build_source(tmp_path / "db.sqlite3", countries, cities)

    return _make


@pytest.fixture
def query(target_path):
    """타겟 DB 조회"""

    def _query(sql, params=()):
        return fetch(target_path, sql, params)

    return _query
