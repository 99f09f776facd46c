"""
Database setup utilities for examples
"""

import asyncpg

from softdelete.db_context import DatabaseManager


async def setup_postgres_connection(
    host: str = "localhost",
    port: int = 5432,
    database: str = "postgres",
    user: str = "postgres",
    password: str = "postgres",
    pool_name: str = "default",
) -> asyncpg.Pool:
    """
    Set up a connection pool to a local PostgreSQL instance and register it
    with the DatabaseManager under `pool_name`.
    """
    pool = await asyncpg.create_pool(
        host=host,
        port=port,
        database=database,
        user=user,
        password=password,
        min_size=1,
        max_size=10,
    )
    await DatabaseManager.add_pool(pool_name, pool)
    print(f"Connected to PostgreSQL at {host}:{port}/{database} as {user}")
    return pool


async def setup_example_schema(pool_name: str = "default"):
    """
    Create the articles and comments tables used by the examples.
    """
    pool = await DatabaseManager.get_pool(pool_name)
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
            """
        )
    print("Articles and comments tables ready")


async def cleanup_example_data(pool_name: str = "default"):
    pool = await DatabaseManager.get_pool(pool_name)
    async with pool.acquire() as conn:
        await conn.execute("TRUNCATE TABLE articles, comments;")
