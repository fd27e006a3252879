from __future__ import annotations

from typing import TYPE_CHECKING

from loguru import logger

from popular_post_reporter.application.orchestrator import ScrapOrchestrator
from popular_post_reporter.infrastructure.config import ScrapperSettings
from popular_post_reporter.infrastructure.message_bus import InMemoryMessageBus
from popular_post_reporter.infrastructure.platforms.instagram.layout import (
    INSTAGRAM_TAG_LAYOUT_2023_09,
    PopularPostLayout,
)
from popular_post_reporter.infrastructure.platforms.instagram.post_locator import (
    InstagramPostLocator,
)
from popular_post_reporter.infrastructure.platforms.instagram.session import (
    InstagramSessionDriver,
)

if TYPE_CHECKING:
    from popular_post_reporter.domain.message_bus import MessageBus
    from popular_post_reporter.infrastructure.context import ApplicationContext


class Application:
    """애플리케이션의 핵심 컴포넌트들을 관리하는 클래스"""

    def __init__(
        self,
        bus: MessageBus,
        driver: InstagramSessionDriver,
        orchestrator: ScrapOrchestrator,
    ):
        self.bus = bus
        self.driver = driver
        self.orchestrator = orchestrator

    async def cleanup(self) -> None:
        await self.driver.close()


def bootstrap(
    context: ApplicationContext,
    settings: ScrapperSettings | None = None,
    layout: PopularPostLayout = INSTAGRAM_TAG_LAYOUT_2023_09,
) -> Application:
    """애플리케이션을 초기화하고 모든 컴포넌트를 연결합니다.

    Args:
        context: 실행 중인 브라우저를 가진 ApplicationContext
        settings: 실행 설정 (기본값: 환경 변수)
        layout: 인기게시물 영역의 구조 계약
    """
    if context.browser is None:
        raise RuntimeError("ApplicationContext가 시작되지 않았습니다.")
    settings = settings or ScrapperSettings.from_env()

    logger.info("애플리케이션 bootstrap 시작", layout_version=layout.version)

    bus = InMemoryMessageBus()
    driver = InstagramSessionDriver(
        browser=context.browser,
        layout=layout,
        login_timeout_ms=settings.login_timeout_ms,
    )
    orchestrator = ScrapOrchestrator(
        driver=driver,
        post_finder=InstagramPostLocator(layout=layout),
        bus=bus,
    )

    logger.info("애플리케이션 bootstrap 완료")
    return Application(bus=bus, driver=driver, orchestrator=orchestrator)
