from contextlib import AbstractAsyncContextManager
from pathlib import Path
from typing import Protocol

from playwright.async_api import Locator, Page

from popular_post_reporter.domain.model import Keyword, TargetPost


class SessionDriver(Protocol):
    """하나의 로그인 세션으로 키워드 탐색 페이지를 다루는 드라이버"""

    async def authenticate(self, username: str, password: str) -> None:
        """로그인하고 세션 쿠키를 저장합니다. 열린 탐색 페이지가 없어야 합니다."""
        ...

    async def explore_keyword(self, keyword: Keyword) -> Page:
        """키워드 탐색 페이지를 열고 네트워크가 안정될 때까지 기다립니다."""
        ...

    def exploration(self, keyword: Keyword) -> AbstractAsyncContextManager[Page]:
        """explore_keyword로 연 페이지를 블록이 끝나면 반드시 닫는 컨텍스트 매니저"""
        ...

    async def mark_element(self, element: Locator) -> None:
        ...

    async def capture_region(self, page: Page, destination: Path) -> Path:
        """헤더부터 마지막 인기게시물 줄까지 스크린샷을 찍고 페이지를 닫습니다."""
        ...

    async def release(self, page: Page) -> None:
        ...


class PostFinder(Protocol):
    async def find(self, page: Page, target: TargetPost) -> Locator | None:
        """인기게시물 안에서 target으로 연결되는 링크를 찾습니다. 없으면 None."""
        ...
