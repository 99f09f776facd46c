import pytest

from softdelete.database_operations import DatabaseOperations, StatementResult
from softdelete.db_context import DatabaseManager, QueryTracker, transactional


class TestDatabaseManager:
    """Test DatabaseManager functionality"""

    @pytest.mark.asyncio
    async def test_get_pool_not_found(self):
        with pytest.raises(ValueError, match="Database pool 'nonexistent' not found"):
            await DatabaseManager.get_pool("nonexistent")

    @pytest.mark.asyncio
    async def test_no_transaction_outside_a_block(self):
        assert DatabaseManager.get_current_connection() is None
        assert DatabaseManager.get_active_transaction() is None
        assert DatabaseManager.transaction_depth() == 0

    @pytest.mark.asyncio
    async def test_operations_require_transaction_context(self):
        with pytest.raises(
            ValueError,
            match="No active transaction found. Repository methods must be called within a transaction context.",
        ):
            await DatabaseOperations().execute_query("SELECT 1", [])

    @pytest.mark.asyncio
    async def test_transactional_needs_a_registered_pool(self):
        @transactional("missing_pool")
        async def archive():
            return True

        with pytest.raises(ValueError, match="'missing_pool' not found"):
            await archive()

    @pytest.mark.asyncio
    async def test_track_queries_without_transaction(self):
        async with DatabaseManager.track_queries() as tracker:
            DatabaseManager.log_query("UPDATE articles SET deleted_at = $1", [None])
            async with DatabaseManager.track_queries() as inner:
                assert inner is tracker
                DatabaseManager.log_query("SELECT * FROM articles", [])

        assert len(tracker) == 2
        updates = tracker.statements("UPDATE")
        assert [s.sql for s in updates] == ["UPDATE articles SET deleted_at = $1"]
        assert updates[0].depth == 0
        assert updates[0].origin
        assert DatabaseManager.get_query_tracker() is None


class TestQueryTracker:
    def test_record_and_clear(self):
        tracker = QueryTracker()
        params = [1]
        tracker.record("DELETE FROM articles WHERE id = $1", params, depth=2)
        params.append(2)

        [statement] = tracker.statements()
        assert statement.params == [1]
        assert statement.depth == 2
        assert tracker.statements("SELECT") == []

        tracker.clear()
        assert len(tracker) == 0


class TestStatementResult:
    def test_row_count_from_command_tag(self):
        assert StatementResult(status="UPDATE 3").row_count() == 3
        assert StatementResult(status="DELETE 0").row_count() == 0
        assert StatementResult(status="INSERT 0 1").row_count() == 1

    def test_row_count_for_selects(self):
        result = StatementResult(rows=[{"id": 1}, {"id": 2}])
        assert result.row_count() == 2

    def test_close_cursor_keeps_row_count(self):
        result = StatementResult(rows=[{"id": 1}])
        result.close_cursor()
        assert result.closed
        assert result.rows == []
        assert result.row_count() == 1
