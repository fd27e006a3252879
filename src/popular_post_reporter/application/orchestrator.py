from __future__ import annotations

import asyncio
from collections.abc import Callable, Sequence
from datetime import datetime
from pathlib import Path
from typing import Final

from loguru import logger
from playwright.async_api import Page

from popular_post_reporter.domain.events import (
    KeywordScrapCompleted,
    ScrapBatchCompleted,
    ScrapBatchStarted,
)
from popular_post_reporter.domain.message_bus import MessageBus
from popular_post_reporter.domain.model import (
    BatchResult,
    Keyword,
    MatchOutcome,
    MatchStatus,
    ScrapFailure,
    ScrapResult,
    TargetPost,
    normalize_entries,
)
from popular_post_reporter.infrastructure.exceptions import (
    InvalidTargetFormatError,
    UnexpectedLayoutError,
)
from popular_post_reporter.infrastructure.logging_utils import (
    PerformanceTracker,
    log_step,
)
from popular_post_reporter.infrastructure.platforms.base import PostFinder, SessionDriver

DIRECTORY_TIME_FORMAT: Final = "%Y-%m-%dT%H-%M-%S"

# 키워드 전체를 실패시키는 예외. 나머지 포스트 단위 예외는 미포함으로 처리
KEYWORD_FATAL_ERRORS: Final = (UnexpectedLayoutError, InvalidTargetFormatError)


def screenshot_file_name(index: int, keyword: str) -> str:
    # 구분자가 들어간 키워드도 배치 디렉토리 안의 파일 하나로 저장
    safe_keyword = keyword.replace("/", "_").replace("\\", "_")
    return f"{index}_{safe_keyword}"


class ScrapOrchestrator:
    """키워드 목록을 순서대로 탐색하며 찾아야 할 포스트가 인기게시물에 있는지 확인합니다.

    키워드는 하나씩 순차적으로 처리하고, 키워드 안의 포스트들은 동시에 찾습니다.
    한 키워드의 실패는 기록만 되고 배치는 항상 끝까지 진행됩니다.
    """

    def __init__(
        self,
        driver: SessionDriver,
        post_finder: PostFinder,
        bus: MessageBus | None = None,
        clock: Callable[[], datetime] = datetime.now,
    ) -> None:
        self.driver = driver
        self.post_finder = post_finder
        self.bus = bus
        self.clock = clock

    async def _publish(self, event) -> None:
        if self.bus is not None:
            await self.bus.handle(event)

    def prepare_output_directory(self, output_root: Path) -> Path:
        directory = output_root / self.clock().strftime(DIRECTORY_TIME_FORMAT)
        directory.mkdir(parents=True, exist_ok=True)
        return directory

    async def run(
        self,
        keywords: Sequence[str],
        targets: Sequence[str],
        output_root: Path,
    ) -> BatchResult:
        tags = normalize_entries(keywords)
        posts = [TargetPost(url=url) for url in normalize_entries(targets)]
        directory = self.prepare_output_directory(output_root)

        logger.info(
            "스크랩 배치 시작",
            keywords=tags,
            target_urls=[p.url for p in posts],
            directory=str(directory),
            event_name="batch_start",
        )
        await self._publish(ScrapBatchStarted(directory=directory, total=len(tags)))

        tracker = PerformanceTracker("scrap_batch")
        tracker.start()

        results: list[ScrapResult | ScrapFailure] = []
        for index, tag in enumerate(tags, start=1):
            with logger.contextualize(keyword=tag, index=index):
                try:
                    outcome: ScrapResult | ScrapFailure = await self._scrap_keyword(
                        index, Keyword(text=tag), posts, directory
                    )
                except Exception as e:
                    logger.exception(
                        "키워드 처리 실패",
                        error=str(e),
                        error_type=e.__class__.__name__,
                        event_name="keyword_failed",
                    )
                    outcome = ScrapFailure(tag=tag, error=e)

            results.append(outcome)
            tracker.checkpoint(f"{index}_{tag}")
            await self._publish(
                KeywordScrapCompleted(index=index, tag=tag, status=outcome.status.value)
            )

        batch = BatchResult(directory=directory, result=results)
        tracker.end()
        logger.info(
            "스크랩 배치 완료",
            total=len(results),
            found=len(batch.found),
            failed=len(batch.failures),
            event_name="batch_completed",
        )
        await self._publish(
            ScrapBatchCompleted(
                directory=directory, total=len(results), failed=len(batch.failures)
            )
        )
        return batch

    async def _scrap_keyword(
        self,
        index: int,
        keyword: Keyword,
        posts: list[TargetPost],
        directory: Path,
    ) -> ScrapResult:
        with log_step("인기게시물 탐색 및 포스트 매칭", posts_to_find_count=len(posts)):
            async with self.driver.exploration(keyword) as page:
                outcomes = await self._match_targets(page, posts)
                found = [o for o in outcomes if o.is_found]

                logger.info(
                    "포스트 매칭 완료",
                    found_count=len(found),
                    target_count=len(posts),
                    error_count=sum(o.status is MatchStatus.ERROR for o in outcomes),
                    event_name="matching_completed",
                )

                if not found:
                    logger.info(
                        "매칭된 포스트 없음 - 스크린샷 생략",
                        event_name="no_matches_no_screenshot",
                    )
                    return ScrapResult(
                        tag=keyword.text,
                        is_popular_post_included=False,
                        screenshot=None,
                        outcomes=outcomes,
                    )

                screenshot_path = await self.driver.capture_region(
                    page, directory / screenshot_file_name(index, keyword.text)
                )
                return ScrapResult(
                    tag=keyword.text,
                    is_popular_post_included=True,
                    screenshot=screenshot_path,
                    outcomes=outcomes,
                )

    async def _match_targets(
        self, page: Page, posts: list[TargetPost]
    ) -> list[MatchOutcome]:
        """모든 포스트를 동시에 찾고, 전부 끝난 뒤 결과를 하나씩 확인합니다."""
        settled = await asyncio.gather(
            *(self._locate_and_mark(page, post) for post in posts),
            return_exceptions=True,
        )

        outcomes: list[MatchOutcome] = []
        for post, result in zip(posts, settled):
            if isinstance(result, KEYWORD_FATAL_ERRORS):
                raise result
            if isinstance(result, BaseException):
                # TODO: 일시적인 조회 실패도 미포함으로 집계됨. ERROR 결과를 별도 상태로 노출할지 결정 필요
                logger.warning(
                    "포스트 탐색 실패 - 미포함으로 처리",
                    target_url=post.url,
                    error=str(result),
                    error_type=result.__class__.__name__,
                    event_name="target_lookup_failed",
                )
                outcomes.append(
                    MatchOutcome(
                        target=post,
                        status=MatchStatus.ERROR,
                        reason=f"{result.__class__.__name__}: {result}",
                    )
                )
            else:
                outcomes.append(result)
        return outcomes

    async def _locate_and_mark(self, page: Page, post: TargetPost) -> MatchOutcome:
        element = await self.post_finder.find(page, post)
        if element is None:
            return MatchOutcome(target=post, status=MatchStatus.NOT_FOUND)

        await self.driver.mark_element(element)
        return MatchOutcome(target=post, status=MatchStatus.FOUND)
