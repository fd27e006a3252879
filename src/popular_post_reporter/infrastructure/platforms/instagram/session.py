from __future__ import annotations

from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from pathlib import Path
from typing import Any, Final
from urllib.parse import quote

from loguru import logger
from playwright.async_api import Browser, BrowserContext, Cookie, Locator, Page
from typing_extensions import override
from playwright.async_api import Error as PlaywrightError
from playwright.async_api import TimeoutError as PlaywrightTimeoutError

from popular_post_reporter.domain.model import Keyword
from popular_post_reporter.infrastructure.config import (
    DEFAULT_LOGIN_TIMEOUT_MS,
    browser_context_options,
)
from popular_post_reporter.infrastructure.exceptions import (
    AccountDeactivatedError,
    InvalidCredentialsError,
    NavigationError,
    ScreenshotError,
    SessionStateError,
)
from popular_post_reporter.infrastructure.logging_utils import (
    PerformanceTracker,
    log_function_call,
    log_step,
    log_with_context,
)
from popular_post_reporter.infrastructure.platforms.base import SessionDriver
from popular_post_reporter.infrastructure.platforms.instagram.layout import (
    INSTAGRAM_TAG_LAYOUT_2023_09,
    PopularPostLayout,
)
from popular_post_reporter.infrastructure.screenshot_region import (
    ScreenshotRegionCalculator,
)


class InstagramSessionDriver(SessionDriver):
    """하나의 Instagram 로그인 세션을 소유하고 해시태그 탐색 페이지를 다룹니다.

    - 세션은 하나의 BrowserContext와 로그인 쿠키로 구성되며 키워드 사이에서 재사용됩니다.
    - 탐색 페이지는 키워드마다 하나씩 열리고, 스크린샷 또는 release 시 닫힙니다.
    - 탐색 페이지가 열려 있는 동안 authenticate를 호출하면 SessionStateError가 발생합니다.
    """

    INSTAGRAM_URL: Final = "https://www.instagram.com/"
    EXPLORE_URL: Final = "https://www.instagram.com/explore/tags/"
    CHALLENGE_URL: Final = "https://www.instagram.com/challenge/"

    USERNAME_INPUT: Final = '[aria-label*="username" i]'
    PASSWORD_INPUT: Final = '[aria-label*="password" i]'
    SUBMIT_BUTTON: Final = '[type="submit"]'
    LOGIN_ERROR_ALERT: Final = "#slfErrorAlert"

    HIGHLIGHT_SCRIPT: Final = (
        '(element) => { element.style.display = "block"; '
        'element.style.outline = "solid 5px red"; }'
    )

    def __init__(
        self,
        browser: Browser,
        layout: PopularPostLayout = INSTAGRAM_TAG_LAYOUT_2023_09,
        region_calculator: ScreenshotRegionCalculator | None = None,
        login_timeout_ms: int = DEFAULT_LOGIN_TIMEOUT_MS,
        context_options: dict[str, Any] | None = None,
    ) -> None:
        self.browser = browser
        self.layout = layout
        self.region_calculator = region_calculator or ScreenshotRegionCalculator()
        self.login_timeout_ms = login_timeout_ms
        self._context_options = context_options or browser_context_options()

        self._context: BrowserContext | None = None
        self._cookies: list[Cookie] | None = None
        self._page: Page | None = None

    @property
    def is_authenticated(self) -> bool:
        return self._cookies is not None

    @property
    def cookies(self) -> list[Cookie]:
        return list(self._cookies or [])

    def _has_open_page(self) -> bool:
        return self._page is not None and not self._page.is_closed()

    async def get_context(self) -> BrowserContext:
        """세션의 BrowserContext를 반환합니다. 처음 호출될 때 생성됩니다."""
        if self._context is None:
            self._context = await self.browser.new_context(**self._context_options)
            logger.debug("세션 BrowserContext 생성", event_name="session_context_created")
        return self._context

    @override
    @log_with_context(platform="instagram")
    async def authenticate(self, username: str, password: str) -> None:
        if self._has_open_page():
            raise SessionStateError("탐색 페이지가 열려 있는 동안에는 로그인할 수 없습니다.")

        # 이전 로그인 시도의 쿠키 제거 (계정 제한으로 끝난 시도 포함)
        had_context = self._context is not None
        context = await self.get_context()
        if had_context:
            await context.clear_cookies()
            self._cookies = None
            logger.debug("기존 세션 쿠키 삭제", event_name="session_cookies_cleared")

        tracker = PerformanceTracker("instagram_login")
        tracker.start()

        with log_step("Instagram 로그인", username=username):
            page = await context.new_page()
            try:
                try:
                    await page.goto(self.INSTAGRAM_URL, wait_until="networkidle")
                    tracker.checkpoint("login_page_loaded")

                    await page.locator(self.USERNAME_INPUT).fill(username)
                    await page.locator(self.PASSWORD_INPUT).fill(password)
                    async with page.expect_navigation(timeout=self.login_timeout_ms):
                        await page.locator(self.SUBMIT_BUTTON).click()
                    tracker.checkpoint("login_submitted")
                except PlaywrightTimeoutError as e:
                    if await page.locator(self.LOGIN_ERROR_ALERT).count() > 0:
                        logger.warning(
                            "로그인 실패 - 에러 메시지 표시됨",
                            username=username,
                            event_name="invalid_credentials",
                        )
                        raise InvalidCredentialsError() from e
                    raise NavigationError(f"로그인 중 페이지 이동 시간 초과: {e}") from e
                except PlaywrightError as e:
                    raise NavigationError(f"로그인 페이지를 열 수 없습니다: {e}") from e

                if page.url.startswith(self.CHALLENGE_URL):
                    logger.warning(
                        "계정 제한 페이지로 이동됨",
                        username=username,
                        url=page.url,
                        event_name="account_deactivated",
                    )
                    raise AccountDeactivatedError()

                self._cookies = await context.cookies()
                logger.debug(
                    "세션 쿠키 저장",
                    cookie_count=len(self._cookies),
                    event_name="session_cookies_saved",
                )
            finally:
                await page.close()
                tracker.end()

    @override
    @log_function_call
    async def explore_keyword(self, keyword: Keyword) -> Page:
        if self._has_open_page():
            raise SessionStateError("이전 키워드의 탐색 페이지가 아직 닫히지 않았습니다.")
        if not self.is_authenticated:
            logger.warning(
                "로그인하지 않은 상태로 탐색합니다",
                keyword=keyword.text,
                event_name="explore_unauthenticated",
            )

        url = self.EXPLORE_URL + quote(keyword.text, safe="")
        try:
            context = await self.get_context()
            page = await context.new_page()
        except PlaywrightError as e:
            raise NavigationError(f"탐색 페이지를 열 수 없습니다: {e}") from e

        self._page = page
        logger.info(
            "해시태그 탐색 페이지로 이동",
            keyword=keyword.text,
            url=url,
            event_name="page_navigate",
        )
        try:
            # 인스타그램 응답이 느릴 수 있어 대기 시간 제한 없음
            await page.goto(url, wait_until="networkidle", timeout=0)
        except PlaywrightError as e:
            await self.release(page)
            raise NavigationError(
                f"해시태그 탐색 페이지로 이동하지 못했습니다: {keyword.text}"
            ) from e

        logger.debug("페이지 로드 완료", keyword=keyword.text, event_name="page_loaded")
        return page

    @override
    @asynccontextmanager
    async def exploration(self, keyword: Keyword) -> AsyncIterator[Page]:
        page = await self.explore_keyword(keyword)
        try:
            yield page
        finally:
            await self.release(page)

    @override
    async def mark_element(self, element: Locator) -> None:
        """주어진 요소에 빨간색 테두리를 적용합니다."""
        await element.evaluate(self.HIGHLIGHT_SCRIPT)

    @override
    @log_function_call
    async def capture_region(self, page: Page, destination: Path) -> Path:
        """헤더부터 상위 3줄까지의 영역을 스크린샷으로 찍고 파일 경로를 반환합니다.

        성공 여부와 관계없이 페이지는 닫힙니다.
        """
        try:
            header = await self.layout.select_header(page)
            candidates = await self.layout.select_candidates(page)

            await self._settle_lazy_images(page, candidates[-1])
            clip = await self.region_calculator.calculate(header, candidates)

            # 스크린샷은 viewport 안에서만 찍히므로 필요한 높이만큼 일시적으로 늘림
            required_height = clip["y"] + clip["height"]
            original_viewport = page.viewport_size
            if original_viewport and original_viewport["height"] < required_height:
                await page.set_viewport_size(
                    {"width": original_viewport["width"], "height": int(required_height) + 1}
                )
                logger.debug(
                    "Viewport 높이 조정",
                    original_height=original_viewport["height"],
                    new_height=int(required_height) + 1,
                    event_name="viewport_resized",
                )

            destination.parent.mkdir(parents=True, exist_ok=True)
            try:
                await page.screenshot(path=destination, clip=clip, type="png")
            except PlaywrightError as e:
                raise ScreenshotError(f"스크린샷을 저장하지 못했습니다: {e}") from e

            logger.info(
                "스크린샷 저장 완료",
                screenshot_path=str(destination),
                event_name="screenshot_saved",
            )
            return destination
        finally:
            await self.release(page)

    async def _settle_lazy_images(self, page: Page, last_row: Locator) -> None:
        """마지막 줄까지 스크롤해 이미지를 불러온 뒤 최상단으로 돌아갑니다."""
        try:
            await last_row.scroll_into_view_if_needed()
            await page.wait_for_load_state("networkidle")
        except PlaywrightError as e:
            logger.warning(
                "lazy loading 대기 실패 - 현재 상태로 촬영",
                error=str(e),
                error_type=e.__class__.__name__,
                event_name="lazy_loading_wait_failed",
            )
        try:
            await page.evaluate("window.scrollTo(0, 0)")
        except PlaywrightError as e:
            raise ScreenshotError(f"스크린샷 위치로 스크롤하지 못했습니다: {e}") from e

    @override
    async def release(self, page: Page) -> None:
        if self._page is page:
            self._page = None
        if page.is_closed():
            return
        await page.close()
        logger.debug("탐색 페이지 정리", event_name="page_cleanup")

    async def close(self) -> None:
        """세션의 BrowserContext를 정리합니다."""
        if self._page is not None:
            await self.release(self._page)
        if self._context is not None:
            await self._context.close()
            self._context = None
            self._cookies = None
            logger.info("Instagram 세션을 정리했습니다.")
