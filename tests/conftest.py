import asyncpg
import pytest
import pytest_asyncio
from testcontainers.postgres import PostgresContainer

from softdelete.db_context import DatabaseManager


@pytest.fixture(scope="session")
def postgres_container():
    """Start a PostgreSQL test container for the session."""
    with PostgresContainer("postgres:17") as postgres:
        yield postgres


@pytest_asyncio.fixture
async def test_db_pool(postgres_container):
    """Create a database pool connected to the test container for each test."""
    host = postgres_container.get_container_host_ip()
    port = postgres_container.get_exposed_port(5432)
    dsn = f"postgresql://{postgres_container.username}:{postgres_container.password}@{host}:{port}/{postgres_container.dbname}"

    # A new pool per test avoids event loop issues
    pool = await asyncpg.create_pool(dsn, min_size=1, max_size=5)

    async with pool.acquire() as conn:
        await conn.execute(
            """
            CREATE TABLE IF NOT EXISTS articles (
                id UUID PRIMARY KEY,
                title VARCHAR(255) NOT NULL,
                body TEXT NOT NULL DEFAULT '',
                deleted_at TIMESTAMP WITH TIME ZONE
            );
            CREATE TABLE IF NOT EXISTS comments (
                id UUID PRIMARY KEY,
                article_id UUID NOT NULL,
                body TEXT NOT NULL,
                deleted_at TIMESTAMP WITH TIME ZONE
            );
            CREATE TABLE IF NOT EXISTS notes (
                id UUID PRIMARY KEY,
                body TEXT NOT NULL
            );
            CREATE TABLE IF NOT EXISTS article_links (
                article_id UUID NOT NULL REFERENCES articles (id)
            );
            CREATE SCHEMA IF NOT EXISTS app;
            CREATE TABLE IF NOT EXISTS app.articles (
                id UUID PRIMARY KEY,
                title VARCHAR(255) NOT NULL,
                body TEXT NOT NULL DEFAULT '',
                deleted_at TIMESTAMP WITH TIME ZONE
            );
            """
        )

    await DatabaseManager.add_pool("test_db", pool)

    yield pool

    async with pool.acquire() as conn:
        await conn.execute("TRUNCATE TABLE article_links, articles, comments, notes, app.articles;")

    await pool.close()
