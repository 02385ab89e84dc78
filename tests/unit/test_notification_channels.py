"""
Unit tests for the Telegram and Discord channels and the composite port.
"""
from typing import List, Optional

import aiohttp
import pytest
from unittest.mock import MagicMock

from conftest import make_course, make_response
from core.retry import RetryPolicy
from services.notification.base import NotificationChannel
from services.notification.discord import DiscordNotifier
from services.notification.telegram import TelegramNotifier
from services.notification_service import NotificationService

POLICY = RetryPolicy(max_attempts=3, base_delay=0.5, incremental=True, retry_after_default=1.0)
WEBHOOK = "https://discord.com/api/webhooks/1/token"


def telegram(session, **kw):
    return TelegramNotifier(
        session=session, retry_policy=POLICY, token="123:ABC", chat_id="42", batch_delay=0.3, **kw
    )


def discord(session, **kw):
    return DiscordNotifier(session=session, retry_policy=POLICY, webhook_url=WEBHOOK, batch_delay=0.35, **kw)


class TestTelegramNotifier:
    @pytest.mark.asyncio
    async def test_sends_markdown_form(self, mock_aiohttp_session, no_sleep):
        notifier = telegram(mock_aiohttp_session)

        ok = await notifier.notify_new_courses("evg", [make_course(1), make_course(2)])

        assert ok is True
        call = mock_aiohttp_session.post.call_args
        assert call.args[0] == "https://api.telegram.org/bot123:ABC/sendMessage"
        form = call.kwargs["data"]
        assert form["chat_id"] == "42"
        assert form["parse_mode"] == "Markdown"
        assert form["disable_web_page_preview"] == "true"
        assert "Curso 1" in form["text"] and "Curso 2" in form["text"]

    @pytest.mark.asyncio
    async def test_rate_limit_retry_honours_retry_after(self, no_sleep):
        session = MagicMock()
        session.post.side_effect = [
            make_response(429, headers={"Retry-After": "2"}, json_body={"ok": False}),
            make_response(200, json_body={"ok": True}),
        ]
        notifier = telegram(session)

        ok = await notifier.notify_new_courses("fgv", [make_course(1)])

        assert ok is True
        assert session.post.call_count == 2
        no_sleep.assert_awaited_once_with(2.0)

    @pytest.mark.asyncio
    async def test_rate_limit_body_hint(self, no_sleep):
        session = MagicMock()
        session.post.side_effect = [
            make_response(429, json_body={"ok": False, "parameters": {"retry_after": 5}}),
            make_response(200),
        ]

        assert await telegram(session).notify_summary("fgv", 3) is True
        no_sleep.assert_awaited_once_with(5.0)

    @pytest.mark.asyncio
    async def test_gives_up_after_retry_budget(self, no_sleep):
        session = MagicMock()
        session.post.side_effect = [make_response(429) for _ in range(3)]

        ok = await telegram(session).notify_new_courses("fgv", [make_course(1)])

        assert ok is False
        assert session.post.call_count == 3
        assert [c.args[0] for c in no_sleep.await_args_list] == [1.0, 1.0]

    @pytest.mark.asyncio
    async def test_client_error_is_not_retried_forever(self, no_sleep):
        session = MagicMock()
        session.post.side_effect = aiohttp.ClientConnectionError("reset")

        assert await telegram(session).notify_new_courses("evg", [make_course(1)]) is False
        assert session.post.call_count == 3
        assert [c.args[0] for c in no_sleep.await_args_list] == [0.5, 1.0]

    @pytest.mark.asyncio
    async def test_client_error_status_fails_fast(self, no_sleep):
        session = MagicMock()
        session.post.return_value = make_response(400, text='{"description": "bad markdown"}')

        assert await telegram(session).notify_new_courses("evg", [make_course(1)]) is False
        assert session.post.call_count == 1
        no_sleep.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_long_text_is_chunked(self, mock_aiohttp_session, no_sleep):
        notifier = telegram(mock_aiohttp_session, max_message_chars=200)
        courses = [make_course(n) for n in range(20)]

        assert await notifier.notify_new_courses("evg", courses) is True

        texts = [c.kwargs["data"]["text"] for c in mock_aiohttp_session.post.call_args_list]
        assert len(texts) > 1
        assert all(len(t) <= 200 for t in texts)
        assert all(c.args[0] == 0.3 for c in no_sleep.await_args_list)

    @pytest.mark.asyncio
    async def test_disabled_without_credentials(self, mock_aiohttp_session):
        notifier = TelegramNotifier(session=mock_aiohttp_session, token="", chat_id="")

        assert notifier.is_enabled() is False
        assert await notifier.notify_new_courses("evg", [make_course(1)]) is False
        mock_aiohttp_session.post.assert_not_called()

    @pytest.mark.asyncio
    async def test_empty_batch_is_a_success(self, mock_aiohttp_session):
        assert await telegram(mock_aiohttp_session).notify_new_courses("evg", []) is True
        mock_aiohttp_session.post.assert_not_called()


class TestDiscordNotifier:
    @pytest.mark.asyncio
    async def test_batches_at_ten_embeds(self, mock_aiohttp_session, no_sleep):
        notifier = discord(mock_aiohttp_session)

        ok = await notifier.notify_new_courses("evg", [make_course(n) for n in range(12)])

        assert ok is True
        payloads = [c.kwargs["json"] for c in mock_aiohttp_session.post.call_args_list]
        assert [len(p["embeds"]) for p in payloads] == [10, 2]
        no_sleep.assert_awaited_once_with(0.35)

    @pytest.mark.asyncio
    async def test_batches_on_character_budget(self, mock_aiohttp_session, no_sleep):
        notifier = discord(mock_aiohttp_session, max_embed_total_chars=600)
        courses = [make_course(n, title="t" * 200) for n in range(4)]

        await notifier.notify_new_courses("evg", courses)

        sizes = [len(c.kwargs["json"]["embeds"]) for c in mock_aiohttp_session.post.call_args_list]
        assert sum(sizes) == 4
        assert len(sizes) > 1

    @pytest.mark.asyncio
    async def test_failed_batch_does_not_stop_the_next(self, no_sleep):
        session = MagicMock()
        session.post.side_effect = [make_response(400, text="bad"), make_response(204)]

        ok = await discord(session).notify_new_courses("evg", [make_course(n) for n in range(11)])

        assert ok is False
        assert session.post.call_count == 2

    @pytest.mark.asyncio
    async def test_summary(self, mock_aiohttp_session):
        assert await discord(mock_aiohttp_session).notify_summary("fgv", 7, "https://api.test") is True
        embeds = mock_aiohttp_session.post.call_args.kwargs["json"]["embeds"]
        assert embeds[0]["title"] == "Resumo — FGV"

    @pytest.mark.asyncio
    async def test_disabled_without_webhook(self, mock_aiohttp_session):
        notifier = DiscordNotifier(session=mock_aiohttp_session, webhook_url="")
        assert await notifier.notify_new_courses("evg", [make_course(1)]) is False


class StubChannel(NotificationChannel):
    def __init__(self, name: str, result: object = True, enabled: bool = True):
        self._name = name
        self.result = result
        self.enabled = enabled
        self.calls: List[tuple] = []

    @property
    def channel_name(self) -> str:
        return self._name

    def is_enabled(self) -> bool:
        return self.enabled

    async def notify_new_courses(self, platform_name, courses) -> bool:
        self.calls.append(("new", platform_name, len(courses)))
        if isinstance(self.result, Exception):
            raise self.result
        return self.result

    async def notify_summary(self, platform_name, total_new, link: Optional[str] = None) -> bool:
        self.calls.append(("summary", platform_name, total_new))
        if isinstance(self.result, Exception):
            raise self.result
        return self.result


class TestNotificationService:
    @pytest.mark.asyncio
    async def test_all_channels_succeed(self):
        a, b = StubChannel("a"), StubChannel("b")
        service = NotificationService([a, b])

        assert await service.notify_new_courses("evg", [make_course(1)]) is True
        assert a.calls == b.calls == [("new", "evg", 1)]

    @pytest.mark.asyncio
    async def test_one_channel_raising_does_not_block_the_other(self):
        broken, healthy = StubChannel("broken", RuntimeError("down")), StubChannel("healthy")
        service = NotificationService([broken, healthy])

        assert await service.notify_new_courses("evg", [make_course(1)]) is False
        assert healthy.calls == [("new", "evg", 1)]

    @pytest.mark.asyncio
    async def test_failed_channel_makes_call_fail(self):
        service = NotificationService([StubChannel("a", False), StubChannel("b")])
        assert await service.notify_summary("evg", 3) is False

    @pytest.mark.asyncio
    async def test_disabled_channels_are_skipped(self):
        off, on = StubChannel("off", enabled=False), StubChannel("on")
        service = NotificationService([off, on])

        assert await service.notify_new_courses("evg", [make_course(1)]) is True
        assert off.calls == []

    @pytest.mark.asyncio
    async def test_no_enabled_channel_reports_failure(self):
        service = NotificationService([StubChannel("off", enabled=False)])
        assert await service.notify_new_courses("evg", [make_course(1)]) is False
        assert await service.notify_summary("evg", 1) is False
