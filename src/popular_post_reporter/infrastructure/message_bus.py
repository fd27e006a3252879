from __future__ import annotations

from collections import defaultdict
from typing import Awaitable, Callable

from loguru import logger
from typing_extensions import override

from popular_post_reporter.domain.events import Event
from popular_post_reporter.domain.message_bus import Handler, MessageBus


class FunctionHandler(Handler):
    """함수를 핸들러 프로토콜에 맞게 감싸는 어댑터"""

    def __init__(self, handler_func: Callable[[Event], Awaitable[None]]):
        self._handler_func = handler_func

    @override
    async def handle(self, message: Event) -> None:
        await self._handler_func(message)


class InMemoryMessageBus(MessageBus):
    """인메모리 메시지 버스 구현체

    구독자의 예외는 로그만 남기고 발행자에게 전파하지 않습니다.
    """

    def __init__(self):
        self._event_handlers: defaultdict[type[Event], list[Handler]] = defaultdict(
            list
        )

    @override
    def subscribe_to_event(self, event: type[Event], handler: Handler) -> None:
        self._event_handlers[event].append(handler)

    @override
    async def handle(self, message: Event) -> None:
        if not isinstance(message, Event):
            raise TypeError(f"Message must be an Event, not {type(message).__name__}")

        for handler in self._event_handlers[type(message)]:
            try:
                await handler.handle(message)
            except Exception as e:
                logger.exception(
                    "이벤트 핸들러 실행 중 오류",
                    event_type=type(message).__name__,
                    error=str(e),
                    error_type=e.__class__.__name__,
                    event_name="event_handler_error",
                )
