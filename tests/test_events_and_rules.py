"""Tests for repository events and application rules"""

import pytest

from softdelete.events import Continue, EventManager, RepositoryEvent, Stopped
from softdelete.rules import RuleMode, RulesChecker
from tests.entities import Article


class TestEventManager:
    @pytest.mark.asyncio
    async def test_dispatch_without_listeners_continues(self):
        outcome = await EventManager().dispatch(RepositoryEvent.BEFORE_DELETE, {})
        assert outcome == Continue()

    @pytest.mark.asyncio
    async def test_sync_and_async_listeners(self):
        events = EventManager()
        calls = []

        def sync_listener(payload):
            calls.append(("sync", payload["n"]))

        async def async_listener(payload):
            calls.append(("async", payload["n"]))
            return Continue()

        events.on(RepositoryEvent.AFTER_DELETE, sync_listener)
        events.on(RepositoryEvent.AFTER_DELETE, async_listener)

        outcome = await events.dispatch(RepositoryEvent.AFTER_DELETE, {"n": 1})

        assert isinstance(outcome, Continue)
        assert calls == [("sync", 1), ("async", 1)]

    @pytest.mark.asyncio
    async def test_stopped_listener_ends_dispatch(self):
        events = EventManager()
        later = []
        events.on(RepositoryEvent.BEFORE_DELETE, lambda payload: Stopped("vetoed"))
        events.on(RepositoryEvent.BEFORE_DELETE, lambda payload: later.append(payload))

        outcome = await events.dispatch(RepositoryEvent.BEFORE_DELETE, {})

        assert outcome == Stopped("vetoed")
        assert later == []

    @pytest.mark.asyncio
    async def test_string_event_names_and_off(self):
        events = EventManager()
        listener = events.on("before_find", lambda payload: Stopped(True))
        assert len(events.listeners(RepositoryEvent.BEFORE_FIND)) == 1

        events.off(RepositoryEvent.BEFORE_FIND, listener)
        outcome = await events.dispatch(RepositoryEvent.BEFORE_FIND, {})
        assert isinstance(outcome, Continue)


class TestRulesChecker:
    def test_passing_rules(self):
        rules = RulesChecker().add_delete(lambda entity, options: True, "always")
        assert rules.check(Article(title="a"), RuleMode.DELETE)

    def test_failing_rule_records_error(self):
        rules = RulesChecker().add_delete(
            lambda entity, options: not entity.title.startswith("[locked]"),
            "not_locked",
            error_field="title",
            message="Locked articles cannot be deleted.",
        )
        article = Article(title="[locked] About")

        assert rules.check(article, RuleMode.DELETE) is False
        assert article.get_errors() == {"title": ["Locked articles cannot be deleted."]}

    def test_rules_are_scoped_by_mode(self):
        rules = RulesChecker().add_create(lambda entity, options: False, "never")
        article = Article(title="a")

        assert rules.check(article, RuleMode.DELETE)
        assert rules.check(article, RuleMode.UPDATE)
        assert not rules.check(article, RuleMode.CREATE)
        assert article.get_errors() == {"_rules": ["The rule `never` failed."]}

    def test_options_reach_rules(self):
        seen = {}

        def rule(entity, options):
            seen.update(options)
            return True

        RulesChecker().add_update(rule, "record").check(
            Article(title="a"), RuleMode.UPDATE, {"primary": False}
        )
        assert seen == {"primary": False}
