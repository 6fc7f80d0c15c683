from __future__ import annotations

from lekhoni.storage.events import Channel, EventBus, Subscription
from tests.utils import logger_to_stderr


def test_publish_reaches_only_the_channel_subscribers() -> None:
    bus = EventBus()
    articles: list[object] = []
    config: list[object] = []
    bus.subscribe(Channel.ARTICLES, articles.append)
    bus.subscribe(Channel.CONFIG, config.append)

    bus.publish(Channel.ARTICLES, [1])

    assert articles == [[1]]
    assert config == []


def test_cancel_is_idempotent_and_unregisters() -> None:
    bus = EventBus()
    seen: list[object] = []
    subscription = bus.subscribe(Channel.ARTICLES, seen.append)

    subscription.cancel()
    subscription.cancel()
    bus.publish(Channel.ARTICLES, "late")

    assert subscription.cancelled
    assert seen == []
    assert bus.subscriber_count(Channel.ARTICLES) == 0


def test_failing_handler_does_not_block_others(capsys) -> None:
    bus = EventBus()
    seen: list[object] = []

    def _boom(_: object) -> None:
        raise RuntimeError("handler exploded")

    bus.subscribe(Channel.MESSAGES, _boom)
    bus.subscribe(Channel.MESSAGES, seen.append)

    with logger_to_stderr():
        bus.publish(Channel.MESSAGES, "payload")

    assert seen == ["payload"]
    assert "handler exploded" in capsys.readouterr().err


def test_attach_swaps_and_cancels_previous_inner() -> None:
    outer = Subscription()
    first = Subscription()
    second = Subscription()

    outer.attach(first)
    outer.attach(second)
    assert first.cancelled
    assert not second.cancelled

    outer.cancel()
    assert second.cancelled

    late = Subscription()
    outer.attach(late)
    assert late.cancelled


def test_subscription_as_context_manager() -> None:
    calls: list[str] = []
    with Subscription(lambda: calls.append("cancelled")):
        pass
    assert calls == ["cancelled"]
