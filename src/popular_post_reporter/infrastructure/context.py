from __future__ import annotations

from types import TracebackType
from typing import Type

from loguru import logger
from playwright.async_api import (
    Browser,
    Playwright,
    async_playwright,
)


class ApplicationContext:
    """애플리케이션의 브라우저 리소스를 관리합니다."""

    def __init__(self, headless: bool = True) -> None:
        self.headless = headless
        self._playwright: Playwright | None = None
        self.browser: Browser | None = None

    async def __aenter__(self) -> ApplicationContext:
        self._playwright = await async_playwright().start()
        # 자동화 감지 우회
        self.browser = await self._playwright.chromium.launch(
            headless=self.headless,
            args=[
                "--disable-blink-features=AutomationControlled",
            ],
        )
        logger.debug(
            "브라우저 실행 완료",
            headless=self.headless,
            browser_version=self.browser.version,
            event_name="browser_launched",
        )
        return self

    async def __aexit__(
        self,
        exc_type: Type[BaseException] | None,
        exc_val: BaseException | None,
        exc_tb: TracebackType | None,
    ) -> None:
        if self.browser:
            await self.browser.close()
            self.browser = None
        if self._playwright:
            await self._playwright.stop()
            self._playwright = None
        logger.debug("브라우저 종료 완료", event_name="browser_closed")
