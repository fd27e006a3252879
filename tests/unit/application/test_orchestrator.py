from __future__ import annotations

from contextlib import asynccontextmanager
from datetime import datetime
from pathlib import Path

import pytest

from popular_post_reporter.application.orchestrator import ScrapOrchestrator
from popular_post_reporter.domain.events import (
    Event,
    KeywordScrapCompleted,
    ScrapBatchCompleted,
    ScrapBatchStarted,
)
from popular_post_reporter.domain.model import (
    Keyword,
    MatchStatus,
    ScrapFailure,
    ScrapResult,
    ScrapStatus,
    TargetPost,
)
from popular_post_reporter.infrastructure.exceptions import (
    InvalidTargetFormatError,
    NavigationError,
    RegionNotFoundError,
    UnexpectedLayoutError,
)
from popular_post_reporter.infrastructure.message_bus import (
    FunctionHandler,
    InMemoryMessageBus,
)
from popular_post_reporter.infrastructure.platforms.instagram.layout import (
    INSTAGRAM_TAG_LAYOUT_2023_09,
)

FIXED_NOW = datetime(2024, 1, 2, 3, 4, 5)
BATCH_DIR_NAME = "2024-01-02T03-04-05"

# Fakes


class FakePage:
    def __init__(self, keyword: str, post_paths: set[str]):
        self.keyword = keyword
        self.post_paths = post_paths
        self.closed = False


class FakeSessionDriver:
    def __init__(
        self,
        listings: dict[str, set[str]],
        failing_keywords: set[str] | None = None,
        on_explore=None,
        capture_error: Exception | None = None,
    ):
        self.listings = listings
        self.failing_keywords = failing_keywords or set()
        self.on_explore = on_explore
        self.capture_error = capture_error
        self.explored: list[str] = []
        self.marked: list[str] = []
        self.captured: list[Path] = []
        self.released: list[str] = []
        self.pages: list[FakePage] = []

    async def authenticate(self, username: str, password: str) -> None:
        pass

    async def explore_keyword(self, keyword: Keyword) -> FakePage:
        if self.on_explore:
            self.on_explore(keyword)
        self.explored.append(keyword.text)
        if keyword.text in self.failing_keywords:
            raise NavigationError(f"navigation failed: {keyword.text}")
        page = FakePage(keyword.text, self.listings.get(keyword.text, set()))
        self.pages.append(page)
        return page

    @asynccontextmanager
    async def exploration(self, keyword: Keyword):
        page = await self.explore_keyword(keyword)
        try:
            yield page
        finally:
            await self.release(page)

    async def mark_element(self, element: str) -> None:
        self.marked.append(element)

    async def capture_region(self, page: FakePage, destination: Path) -> Path:
        try:
            if self.capture_error:
                raise self.capture_error
            self.captured.append(destination)
            return destination
        finally:
            page.closed = True

    async def release(self, page: FakePage) -> None:
        if not page.closed:
            page.closed = True
            self.released.append(page.keyword)


class FakePostFinder:
    def __init__(
        self,
        errors: dict[tuple[str, str], Exception] | None = None,
        layout_broken: set[str] | None = None,
    ):
        self.errors = errors or {}
        self.layout_broken = layout_broken or set()
        self.calls: list[tuple[str, str]] = []

    async def find(self, page: FakePage, target: TargetPost) -> str | None:
        self.calls.append((page.keyword, target.url))
        post_path = INSTAGRAM_TAG_LAYOUT_2023_09.extract_post_path(target.url)
        if page.keyword in self.layout_broken:
            raise UnexpectedLayoutError("인기게시물 영역을 찾을 수 없습니다")
        error = self.errors.get((page.keyword, target.url))
        if error:
            raise error
        if post_path in page.post_paths:
            return f"{page.keyword}:{post_path}"
        return None


def make_orchestrator(driver, finder, bus=None) -> ScrapOrchestrator:
    return ScrapOrchestrator(
        driver=driver, post_finder=finder, bus=bus, clock=lambda: FIXED_NOW
    )


# Unit Tests


async def test_found_and_not_found_keywords(tmp_path: Path):
    driver = FakeSessionDriver(listings={"shoes": {"/p/AbC123/"}, "bags": set()})
    orchestrator = make_orchestrator(driver, FakePostFinder())

    batch = await orchestrator.run(
        ["shoes", "bags"], ["https://site/p/AbC123/"], tmp_path
    )

    directory = tmp_path / BATCH_DIR_NAME
    assert batch.directory == directory
    assert directory.is_dir()

    shoes, bags = batch.result
    assert isinstance(shoes, ScrapResult)
    assert shoes.tag == "shoes"
    assert shoes.is_popular_post_included is True
    assert shoes.screenshot == directory / "1_shoes"

    assert isinstance(bags, ScrapResult)
    assert bags.tag == "bags"
    assert bags.is_popular_post_included is False
    assert bags.screenshot is None

    assert driver.captured == [directory / "1_shoes"]
    assert driver.released == ["bags"]
    assert driver.marked == ["shoes:/p/AbC123/"]
    assert all(page.closed for page in driver.pages)


async def test_keywords_are_processed_in_order_one_at_a_time(tmp_path: Path):
    driver = FakeSessionDriver(listings={})
    orchestrator = make_orchestrator(driver, FakePostFinder())

    batch = await orchestrator.run(["c", "a", "b"], ["https://site/p/x/"], tmp_path)

    assert driver.explored == ["c", "a", "b"]
    assert [r.tag for r in batch.result] == ["c", "a", "b"]


async def test_keywords_and_targets_are_normalized(tmp_path: Path):
    driver = FakeSessionDriver(listings={"shoes": {"/p/AbC123/"}})
    finder = FakePostFinder()
    orchestrator = make_orchestrator(driver, finder)

    batch = await orchestrator.run(
        ["sho\r\nes", "", "\n", "bags\r"],
        ["https://site/p/AbC123/\r\n", "\r\n", ""],
        tmp_path,
    )

    assert [r.tag for r in batch.result] == ["shoes", "bags"]
    assert finder.calls == [
        ("shoes", "https://site/p/AbC123/"),
        ("bags", "https://site/p/AbC123/"),
    ]


async def test_screenshot_index_counts_normalized_keywords(tmp_path: Path):
    driver = FakeSessionDriver(listings={"bags": {"/p/AbC123/"}})
    orchestrator = make_orchestrator(driver, FakePostFinder())

    batch = await orchestrator.run(["", "shoes", "bags"], ["https://site/p/AbC123/"], tmp_path)

    assert batch.result[1].screenshot == tmp_path / BATCH_DIR_NAME / "2_bags"


@pytest.mark.parametrize(
    ("keyword", "file_name"),
    [("shoes", "1_shoes"), ("black/white", "1_black_white"), ("a\\b", "1_a_b")],
)
async def test_screenshot_stays_in_batch_directory(
    tmp_path: Path, keyword: str, file_name: str
):
    driver = FakeSessionDriver(listings={keyword: {"/p/AbC123/"}})
    orchestrator = make_orchestrator(driver, FakePostFinder())

    batch = await orchestrator.run([keyword], ["https://site/p/AbC123/"], tmp_path)

    [result] = batch.result
    assert result.tag == keyword
    assert result.screenshot == tmp_path / BATCH_DIR_NAME / file_name
    assert result.screenshot.parent == batch.directory


async def test_invalid_target_fails_keyword_but_not_batch(tmp_path: Path):
    driver = FakeSessionDriver(listings={"shoes": {"/p/AbC123/"}, "bags": set()})
    orchestrator = make_orchestrator(driver, FakePostFinder())

    batch = await orchestrator.run(
        ["shoes", "bags"],
        ["https://site/p/AbC123/", "https://site/explore/"],
        tmp_path,
    )

    assert len(batch.result) == 2
    for failure in batch.result:
        assert isinstance(failure, ScrapFailure)
        assert isinstance(failure.error, InvalidTargetFormatError)
        assert failure.status is ScrapStatus.ERROR
    assert driver.captured == []
    assert all(page.closed for page in driver.pages)


async def test_navigation_failure_is_reported_before_target_validation(tmp_path: Path):
    driver = FakeSessionDriver(listings={"x": set()}, failing_keywords={"y"})
    orchestrator = make_orchestrator(driver, FakePostFinder())

    batch = await orchestrator.run(["x", "y"], ["https://site/explore/"], tmp_path)

    assert isinstance(batch.result[0].error, InvalidTargetFormatError)
    assert isinstance(batch.result[1].error, NavigationError)


async def test_navigation_failure_is_recorded_and_batch_continues(tmp_path: Path):
    driver = FakeSessionDriver(listings={"y": {"/p/AbC123/"}}, failing_keywords={"x"})
    orchestrator = make_orchestrator(driver, FakePostFinder())

    batch = await orchestrator.run(["x", "y"], ["https://site/p/AbC123/"], tmp_path)

    assert len(batch.result) == 2
    x, y = batch.result
    assert isinstance(x, ScrapFailure)
    assert x.tag == "x"
    assert isinstance(x.error, NavigationError)
    assert isinstance(y, ScrapResult)
    assert y.is_popular_post_included is True
    assert batch.failures == [x]
    assert batch.found == [y]


async def test_unexpected_layout_fails_keyword_and_releases_page(tmp_path: Path):
    driver = FakeSessionDriver(listings={"shoes": set(), "bags": set()})
    finder = FakePostFinder(layout_broken={"shoes"})
    orchestrator = make_orchestrator(driver, finder)

    batch = await orchestrator.run(["shoes", "bags"], ["https://site/p/AbC123/"], tmp_path)

    assert isinstance(batch.result[0], ScrapFailure)
    assert isinstance(batch.result[0].error, UnexpectedLayoutError)
    assert isinstance(batch.result[1], ScrapResult)
    assert driver.released == ["shoes", "bags"]


async def test_target_lookup_error_is_treated_as_not_found(tmp_path: Path):
    driver = FakeSessionDriver(listings={"shoes": {"/p/AbC123/"}})
    finder = FakePostFinder(
        errors={("shoes", "https://site/p/Broken/"): RuntimeError("element detached")}
    )
    orchestrator = make_orchestrator(driver, finder)

    batch = await orchestrator.run(
        ["shoes"], ["https://site/p/Broken/", "https://site/p/AbC123/"], tmp_path
    )

    (result,) = batch.result
    assert isinstance(result, ScrapResult)
    assert result.is_popular_post_included is True
    broken, found = result.outcomes
    assert broken.status is MatchStatus.ERROR
    assert "element detached" in broken.reason
    assert found.status is MatchStatus.FOUND


async def test_only_errored_targets_yield_not_included(tmp_path: Path):
    driver = FakeSessionDriver(listings={"shoes": {"/p/AbC123/"}})
    finder = FakePostFinder(
        errors={("shoes", "https://site/p/AbC123/"): RuntimeError("timeout")}
    )
    orchestrator = make_orchestrator(driver, finder)

    batch = await orchestrator.run(["shoes"], ["https://site/p/AbC123/"], tmp_path)

    (result,) = batch.result
    assert result.is_popular_post_included is False
    assert result.screenshot is None
    assert driver.captured == []
    assert driver.released == ["shoes"]


async def test_mark_failure_is_isolated_to_its_target(tmp_path: Path, mocker):
    driver = FakeSessionDriver(listings={"shoes": {"/p/A/", "/p/B/"}})
    original_mark = driver.mark_element

    async def flaky_mark(element: str) -> None:
        if element.endswith("/p/A/"):
            raise RuntimeError("style mutation failed")
        await original_mark(element)

    mocker.patch.object(driver, "mark_element", side_effect=flaky_mark)
    orchestrator = make_orchestrator(driver, FakePostFinder())

    batch = await orchestrator.run(
        ["shoes"], ["https://site/p/A/", "https://site/p/B/"], tmp_path
    )

    (result,) = batch.result
    assert [o.status for o in result.outcomes] == [MatchStatus.ERROR, MatchStatus.FOUND]
    assert result.is_popular_post_included is True
    assert driver.marked == ["shoes:/p/B/"]


async def test_capture_failure_is_recorded_for_keyword(tmp_path: Path):
    driver = FakeSessionDriver(
        listings={"shoes": {"/p/AbC123/"}},
        capture_error=RegionNotFoundError("no geometry"),
    )
    orchestrator = make_orchestrator(driver, FakePostFinder())

    batch = await orchestrator.run(
        ["shoes", "bags"], ["https://site/p/AbC123/"], tmp_path
    )

    assert isinstance(batch.result[0].error, RegionNotFoundError)
    assert isinstance(batch.result[1], ScrapResult)
    assert all(page.closed for page in driver.pages)


async def test_output_directory_exists_before_first_exploration(tmp_path: Path):
    seen: list[bool] = []
    driver = FakeSessionDriver(
        listings={},
        on_explore=lambda _: seen.append((tmp_path / BATCH_DIR_NAME).is_dir()),
    )
    orchestrator = make_orchestrator(driver, FakePostFinder())

    await orchestrator.run(["shoes"], ["https://site/p/AbC123/"], tmp_path)

    assert seen == [True]


async def test_empty_keyword_list_still_creates_directory(tmp_path: Path):
    orchestrator = make_orchestrator(FakeSessionDriver(listings={}), FakePostFinder())

    batch = await orchestrator.run(["", "\r\n"], ["https://site/p/AbC123/"], tmp_path)

    assert batch.result == []
    assert batch.directory.is_dir()


@pytest.mark.parametrize(
    "keywords",
    [
        ["a"],
        ["a", "b", "c"],
        ["a\n", "", "b", "\r\n", "c"],
    ],
)
async def test_result_length_matches_normalized_keywords(tmp_path: Path, keywords):
    driver = FakeSessionDriver(listings={"a": {"/p/T/"}}, failing_keywords={"b"})
    orchestrator = make_orchestrator(driver, FakePostFinder())

    batch = await orchestrator.run(keywords, ["https://site/p/T/"], tmp_path)

    expected = [k.replace("\r", "").replace("\n", "") for k in keywords]
    assert [r.tag for r in batch.result] == [k for k in expected if k]


async def test_progress_events_are_published_in_order(tmp_path: Path):
    bus = InMemoryMessageBus()
    received: list[Event] = []

    async def collect(event: Event) -> None:
        received.append(event)

    for event_type in (ScrapBatchStarted, KeywordScrapCompleted, ScrapBatchCompleted):
        bus.subscribe_to_event(event_type, FunctionHandler(collect))

    driver = FakeSessionDriver(listings={"shoes": {"/p/AbC123/"}}, failing_keywords={"x"})
    orchestrator = make_orchestrator(driver, FakePostFinder(), bus=bus)

    await orchestrator.run(["shoes", "x"], ["https://site/p/AbC123/"], tmp_path)

    directory = tmp_path / BATCH_DIR_NAME
    assert received == [
        ScrapBatchStarted(directory=directory, total=2),
        KeywordScrapCompleted(index=1, tag="shoes", status="포함"),
        KeywordScrapCompleted(index=2, tag="x", status="에러"),
        ScrapBatchCompleted(directory=directory, total=2, failed=1),
    ]
