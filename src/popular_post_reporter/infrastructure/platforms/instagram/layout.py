"""Instagram 해시태그 탐색 페이지의 구조 계약

자동화가 의존하는 모든 선택자와 개수 가정을 이 모듈에 모아 둡니다.
인스타그램 UI가 바뀌면 새 버전의 PopularPostLayout을 만들어 주입합니다.
"""

import re
from dataclasses import dataclass, field
from typing import Final

from playwright.async_api import Locator, Page

from popular_post_reporter.infrastructure.exceptions import (
    InvalidTargetFormatError,
    UnexpectedLayoutError,
)

POST_PATH_PATTERN: Final = re.compile(r"/p/([\w-]+)/?")


@dataclass(frozen=True)
class PopularPostLayout:
    """인기게시물 영역의 구조에 대한 가정

    Attributes:
        version: 이 구조가 확인된 시점
        header_selector: 해시태그 헤더 영역
        candidate_selector: 게시물 한 줄(3개)을 감싸는 컨테이너
        candidate_count: 탐색 대상 줄 수 (상위 9개 = 3줄)
    """

    version: str
    header_selector: str
    candidate_selector: str
    candidate_count: int = 3
    post_path_pattern: re.Pattern[str] = field(default=POST_PATH_PATTERN)

    def extract_post_path(self, url: str) -> str:
        """포스트 URL에서 도메인을 제외한 `/p/<id>/` 부분을 추출합니다.

        예시:
        - https://www.instagram.com/p/CS4L_ooFfJb/ -> /p/CS4L_ooFfJb/
        - https://www.instagram.com/p/CS4L_ooFfJb -> /p/CS4L_ooFfJb/
        """
        match = self.post_path_pattern.search(url)
        if match is None:
            raise InvalidTargetFormatError(f"잘못된 형식의 포스트 URL입니다: {url}")
        return f"/p/{match.group(1)}/"

    async def select_header(self, page: Page) -> Locator:
        header = page.locator(self.header_selector)
        if await header.count() == 0:
            raise UnexpectedLayoutError(
                "해시태그 헤더 영역을 찾을 수 없습니다. "
                "인스타그램 UI가 변경된 경우 이 에러가 발생할 수 있습니다."
            )
        return header.first

    async def select_candidates(self, page: Page) -> list[Locator]:
        """상위 candidate_count개의 게시물 줄을 반환합니다.

        2023.09 기준 한 줄당 3개씩 노출되므로 상위 3줄이 상위 9개 게시물입니다.
        """
        all_rows = await page.locator(self.candidate_selector).all()
        rows = all_rows[: self.candidate_count]

        if len(rows) != self.candidate_count:
            raise UnexpectedLayoutError(
                f"인기게시물 영역을 찾을 수 없습니다 (발견: {len(all_rows)}줄). "
                "인스타그램 UI가 변경된 경우 이 에러가 발생할 수 있습니다."
            )
        return rows

    def post_link(self, container: Locator, post_path: str) -> Locator:
        """컨테이너 안에서 주어진 포스트로 연결되는 링크"""
        return container.locator(f'a[href*="{post_path}"]')


INSTAGRAM_TAG_LAYOUT_2023_09: Final = PopularPostLayout(
    version="2023-09",
    header_selector="section > main > header",
    candidate_selector="section > main > article > div > div > div > div",
)
