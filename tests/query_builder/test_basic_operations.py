"""
Tests for building SELECT, UPDATE and DELETE statements.
"""

from datetime import UTC, datetime
from uuid import uuid4

import pytest

from softdelete.query_builder import QueryBuilder, QueryKind


class TestSelect:
    def test_basic_select_all(self):
        query, params = QueryBuilder("articles").build()

        assert query == "SELECT * FROM articles"
        assert params == []

    def test_select_specific_fields(self):
        query, _ = QueryBuilder("articles").select("id", "title").build()
        assert query == "SELECT id, title FROM articles"

    def test_alias_differs_from_table(self):
        query, _ = QueryBuilder("articles", alias="Articles").build()
        assert query == "SELECT * FROM articles AS Articles"

    def test_alias_equal_to_table_is_omitted(self):
        assert QueryBuilder("app.articles", alias="articles").to_sql() == (
            "SELECT * FROM app.articles"
        )

    def test_order_and_limit(self):
        query, _ = QueryBuilder("articles").order_by("title").limit(20).build()
        assert query == "SELECT * FROM articles ORDER BY title LIMIT 20"

    def test_fluent_interface_immutability(self):
        builder1 = QueryBuilder("articles")
        builder2 = builder1.where("id", "123")

        assert builder1 is not builder2
        assert builder1.to_sql() == "SELECT * FROM articles"
        assert builder2.to_sql() == "SELECT * FROM articles WHERE id = $1"


class TestUpdate:
    def test_set_values_follow_where_parameters(self):
        article_id = uuid4()
        deleted_at = datetime(2024, 5, 1, tzinfo=UTC)
        query, params = (
            QueryBuilder("articles", QueryKind.UPDATE)
            .where("id", article_id)
            .set({"deleted_at": deleted_at})
            .build()
        )

        assert query == "UPDATE articles SET deleted_at = $2 WHERE id = $1"
        assert params == [article_id, deleted_at]

    def test_update_without_conditions(self):
        query, params = (
            QueryBuilder("articles", QueryKind.UPDATE)
            .set({"title": "a", "body": "b"})
            .build()
        )
        assert query == "UPDATE articles SET title = $1, body = $2"
        assert params == ["a", "b"]

    def test_update_requires_values(self):
        with pytest.raises(ValueError, match="UPDATE query requires values to set"):
            QueryBuilder("articles", QueryKind.UPDATE).where("id", 1).build()


class TestDelete:
    def test_delete_with_conditions(self):
        cutoff = datetime(2024, 1, 1, tzinfo=UTC)
        query, params = (
            QueryBuilder("articles", QueryKind.DELETE)
            .where("deleted_at", "!=", None)
            .where("deleted_at", "<=", cutoff)
            .build()
        )

        assert query == (
            "DELETE FROM articles WHERE deleted_at IS NOT NULL AND deleted_at <= $1"
        )
        assert params == [cutoff]

    def test_delete_ignores_select_only_clauses(self):
        query, _ = QueryBuilder("articles", QueryKind.DELETE).limit(5).build()
        assert query == "DELETE FROM articles"


class TestExecutionBinding:
    @pytest.mark.asyncio
    async def test_unbound_query_cannot_execute(self):
        with pytest.raises(ValueError, match="Query is not bound to a repository"):
            await QueryBuilder("articles").execute()

    @pytest.mark.asyncio
    async def test_before_find_fires_once_for_selects(self):
        builder = QueryBuilder("articles")
        await builder.trigger_before_find()
        assert builder.before_find_fired

        clone = builder.where("id", 1)
        assert clone.before_find_fired

    @pytest.mark.asyncio
    async def test_before_find_skips_other_kinds(self):
        builder = QueryBuilder("articles", QueryKind.UPDATE)
        await builder.trigger_before_find()
        assert not builder.before_find_fired
