from __future__ import annotations

from typing import Optional

import pytest

from neutrondb.domain.models import Model
from neutrondb.domain.query import (
    QueryBuilder,
    normalize_direction,
    normalize_operator,
    validate_identifier,
)
from neutrondb.exceptions import ValidationError
from neutrondb.infrastructure.backends import MySQLBackend, PostgresBackend
from neutrondb.infrastructure.connection import Connection


class Article(Model):
    __table__ = "articles"

    id: Optional[int] = None
    title: str
    views: int = 0


@pytest.fixture
def builder(connection: Connection) -> QueryBuilder[Article]:
    return Article.query(connection)


def test_bare_query_selects_whole_table(builder: QueryBuilder[Article]) -> None:
    assert builder.to_sql() == ('SELECT * FROM "articles"', {})


def test_where_predicates_are_and_joined_with_named_parameters(
    builder: QueryBuilder[Article],
) -> None:
    sql, params = builder.where("views", ">", 10).where("title", "LIKE", "intro%").to_sql()

    assert sql == 'SELECT * FROM "articles" WHERE "views" > :views_0 AND "title" LIKE :title_1'
    assert params == {"views_0": 10, "title_1": "intro%"}


def test_same_column_twice_gets_distinct_parameters(builder: QueryBuilder[Article]) -> None:
    sql, params = builder.where("views", ">=", 1).where("views", "<", 5).to_sql()

    assert '"views" >= :views_0 AND "views" < :views_1' in sql
    assert params == {"views_0": 1, "views_1": 5}


def test_full_clause_order(builder: QueryBuilder[Article]) -> None:
    sql, _ = (
        builder.offset(20).limit(10).order_by("views", "desc").where("title", "!=", "x").to_sql()
    )

    assert sql == (
        'SELECT * FROM "articles" WHERE "title" != :title_0 ORDER BY "views" DESC '
        "LIMIT 10 OFFSET 20"
    )


def test_sql_generation_is_deterministic(connection: Connection) -> None:
    def build() -> tuple:
        return (
            Article.query(connection)
            .where("title", "=", "a")
            .where("views", "<=", 3)
            .order_by("id")
            .limit(2)
            .to_sql()
        )

    assert build() == build()


def test_order_by_last_call_wins(builder: QueryBuilder[Article]) -> None:
    sql, _ = builder.order_by("title", "DESC").order_by("views").to_sql()

    assert sql.endswith('ORDER BY "views" ASC')
    assert "title" not in sql


@pytest.mark.parametrize(
    "direction,expected",
    [
        ("ASC", "ASC"),
        ("desc", "DESC"),
        (" Desc ", "DESC"),
        ("sideways", "ASC"),
        ("DESC; DROP TABLE articles", "ASC"),
        (None, "ASC"),
    ],
)
def test_direction_normalizes_to_asc_or_desc(direction, expected) -> None:
    assert normalize_direction(direction) == expected


def test_offset_without_limit_uses_unbounded_limit(builder: QueryBuilder[Article]) -> None:
    sql, _ = builder.offset(3).to_sql()

    assert sql == 'SELECT * FROM "articles" LIMIT -1 OFFSET 3'


def test_exists_projects_cheap_check(builder: QueryBuilder[Article]) -> None:
    sql, params = builder.where("title", "=", "x").order_by("views").limit(5).exists_sql()

    assert sql == 'SELECT 1 FROM "articles" WHERE "title" = :title_0 LIMIT 1'
    assert params == {"title_0": "x"}


def test_each_query_call_starts_with_fresh_state(connection: Connection) -> None:
    first = Article.query(connection).where("title", "=", "a").limit(1)
    second = Article.query(connection)

    assert first is not second
    assert second.state.predicates == []
    assert second.state.limit is None
    assert second.to_sql() == ('SELECT * FROM "articles"', {})


def test_static_where_shortcut_builds_new_builder(connection: Connection) -> None:
    sql, params = Article.where("views", "=", 1, connection=connection).to_sql()

    assert sql == 'SELECT * FROM "articles" WHERE "views" = :views_0'
    assert params == {"views_0": 1}


def test_postgres_placeholders_use_pyformat() -> None:
    conn = Connection(PostgresBackend(database="app"))
    sql, params = Article.query(conn).where("title", "=", "a").offset(2).to_sql()

    assert sql == 'SELECT * FROM "articles" WHERE "title" = %(title_0)s LIMIT ALL OFFSET 2'
    assert params == {"title_0": "a"}
    assert not conn.is_open


def test_mysql_placeholders_and_unbounded_limit() -> None:
    conn = Connection(MySQLBackend(database="app"))
    sql, _ = Article.query(conn).where("views", ">", 1).offset(5).to_sql()

    assert sql == (
        "SELECT * FROM `articles` WHERE `views` > %(views_0)s LIMIT 18446744073709551615 OFFSET 5"
    )


@pytest.mark.parametrize(
    "column",
    ["", "title; DROP TABLE x", "1views", "a.b", "title--", "na me", None, 5],
)
def test_unsafe_column_names_are_rejected(builder: QueryBuilder[Article], column) -> None:
    with pytest.raises(ValidationError):
        builder.where(column, "=", 1)


@pytest.mark.parametrize("operator", ["<>", "IN", "= 1 OR 1 =", "", None, "NOT LIKE"])
def test_unknown_operators_are_rejected(builder: QueryBuilder[Article], operator) -> None:
    with pytest.raises(ValidationError):
        builder.where("views", operator, 1)


def test_operator_is_case_insensitive_like() -> None:
    assert normalize_operator("like") == "LIKE"
    assert normalize_operator(" >= ") == ">="


def test_non_scalar_value_is_rejected(builder: QueryBuilder[Article]) -> None:
    with pytest.raises(ValidationError):
        builder.where("views", "=", [1, 2])


@pytest.mark.parametrize("value", [-1, 1.5, "10", True])
def test_limit_and_offset_require_non_negative_integers(
    builder: QueryBuilder[Article], value
) -> None:
    with pytest.raises(ValidationError):
        builder.limit(value)
    with pytest.raises(ValidationError):
        builder.offset(value)


def test_rejected_predicate_does_not_change_state(builder: QueryBuilder[Article]) -> None:
    builder.where("views", "=", 1)
    with pytest.raises(ValidationError):
        builder.where("bad column", "=", 2)

    assert len(builder.state.predicates) == 1


def test_validate_identifier_returns_name() -> None:
    assert validate_identifier("created_at") == "created_at"
    assert validate_identifier("_private") == "_private"
