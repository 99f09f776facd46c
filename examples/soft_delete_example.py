"""
Soft delete walkthrough.

Run against a local PostgreSQL (see db_setup.py for the connection
defaults):

    python -m examples.soft_delete_example
"""

import asyncio
from datetime import UTC, datetime
from uuid import UUID

from examples.db_setup import (
    cleanup_example_data,
    setup_example_schema,
    setup_postgres_connection,
)
from softdelete import (
    BaseEntity,
    DatabaseManager,
    Repository,
    RepositoryConfig,
    RepositoryEvent,
    SoftDeleteFeature,
    Stopped,
)


class Article(BaseEntity):
    title: str
    body: str = ""
    deleted_at: datetime | None = None


class Comment(BaseEntity):
    article_id: UUID
    body: str
    deleted_at: datetime | None = None


articles = Repository(
    Article,
    table_name="articles",
    config=RepositoryConfig(features=[SoftDeleteFeature(field="deleted_at")]),
)
comments = Repository(
    Comment,
    table_name="comments",
    config=RepositoryConfig(features=[SoftDeleteFeature(field="deleted_at")]),
)
articles.has_many("comments", comments, foreign_key="article_id")


def protect_pinned(payload):
    if payload["entity"].title.startswith("[pinned]"):
        return Stopped(False)
    return None


articles.events.on(RepositoryEvent.BEFORE_DELETE, protect_pinned)


async def main():
    pool = await setup_postgres_connection()
    await setup_example_schema()
    await cleanup_example_data()

    async with DatabaseManager.transaction(track_queries=True):
        article = Article(title="Soft delete in practice")
        await articles.save(article)
        await comments.save(Comment(article_id=article.id, body="Nice"))

        await articles.delete(article)  # comments are soft deleted too
        print("active articles:", await articles.find().count())
        print("all articles:", await articles.find().with_deleted().count())
        print("active comments:", await comments.find().count())

        await articles.restore(article)
        print("after restore:", await articles.find().count())

        pinned = Article(title="[pinned] House rules")
        await articles.save(pinned)
        print("pinned deleted:", await articles.delete(pinned))

        await articles.delete(article)
        purged = await articles.hard_delete_all(datetime.now(UTC))
        print("purged:", purged)

        for statement in Repository.get_query_tracker().statements():
            print(statement.depth, statement.sql)

    await pool.close()


if __name__ == "__main__":
    asyncio.run(main())
