import asyncio
from typing_extensions import override

from loguru import logger
from playwright.async_api import Locator, Page

from popular_post_reporter.domain.model import TargetPost
from popular_post_reporter.infrastructure.platforms.base import PostFinder
from popular_post_reporter.infrastructure.platforms.instagram.layout import (
    INSTAGRAM_TAG_LAYOUT_2023_09,
    PopularPostLayout,
)


class InstagramPostLocator(PostFinder):
    """인기게시물 상위 3줄에서 찾아야 할 포스트의 링크를 찾습니다."""

    def __init__(self, layout: PopularPostLayout = INSTAGRAM_TAG_LAYOUT_2023_09) -> None:
        self.layout = layout

    async def _find_in_container(
        self, container: Locator, post_path: str
    ) -> Locator | None:
        link = self.layout.post_link(container, post_path)
        if await link.count() == 0:
            return None
        return link.first

    @override
    async def find(self, page: Page, target: TargetPost) -> Locator | None:
        post_path = self.layout.extract_post_path(target.url)
        containers = await self.layout.select_candidates(page)

        # 모든 줄의 조회가 끝날 때까지 기다린 뒤 줄 순서대로 결과를 확인
        results = await asyncio.gather(
            *(self._find_in_container(c, post_path) for c in containers),
            return_exceptions=True,
        )

        for row, result in enumerate(results, start=1):
            if isinstance(result, BaseException):
                logger.warning(
                    "인기게시물 줄 조회 실패",
                    target_url=target.url,
                    row=row,
                    error=str(result),
                    error_type=result.__class__.__name__,
                    event_name="row_lookup_failed",
                )
                continue
            if result is not None:
                logger.debug(
                    "포스트 발견",
                    target_url=target.url,
                    row=row,
                    event_name="post_found",
                )
                return result

        logger.debug("포스트 없음", target_url=target.url, event_name="post_not_found")
        return None
