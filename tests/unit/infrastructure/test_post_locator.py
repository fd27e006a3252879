import asyncio

import pytest
from pytest_mock import MockerFixture

from popular_post_reporter.domain.model import TargetPost
from popular_post_reporter.infrastructure.exceptions import (
    InvalidTargetFormatError,
    UnexpectedLayoutError,
)
from popular_post_reporter.infrastructure.platforms.instagram.post_locator import (
    InstagramPostLocator,
)

TARGET = TargetPost(url="https://www.instagram.com/p/AbC123/")


def make_container(mocker: MockerFixture, name: str, count=0, delay=0.0, error=None):
    """count()가 delay 후 결과를 돌려주는 인기게시물 줄"""
    container = mocker.MagicMock(name=name)
    link = container.locator.return_value
    link.first = f"{name}-link"

    async def delayed_count() -> int:
        await asyncio.sleep(delay)
        if error:
            raise error
        return count

    link.count = mocker.AsyncMock(side_effect=delayed_count)
    return container


def make_page(mocker: MockerFixture, containers):
    page = mocker.MagicMock(name="page")
    page.locator.return_value.all = mocker.AsyncMock(return_value=containers)
    return page


async def test_returns_match_from_matching_row(mocker: MockerFixture):
    containers = [
        make_container(mocker, "row1"),
        make_container(mocker, "row2", count=1),
        make_container(mocker, "row3"),
    ]

    found = await InstagramPostLocator().find(make_page(mocker, containers), TARGET)

    assert found == "row2-link"
    for container in containers:
        container.locator.assert_called_once_with('a[href*="/p/AbC123/"]')


async def test_follows_row_order_not_completion_order(mocker: MockerFixture):
    containers = [
        make_container(mocker, "row1", count=1, delay=0.05),
        make_container(mocker, "row2", count=1),
        make_container(mocker, "row3"),
    ]

    found = await InstagramPostLocator().find(make_page(mocker, containers), TARGET)

    assert found == "row1-link"


async def test_failed_row_does_not_hide_match_in_other_row(mocker: MockerFixture):
    containers = [
        make_container(mocker, "row1", error=RuntimeError("detached")),
        make_container(mocker, "row2"),
        make_container(mocker, "row3", count=1, delay=0.01),
    ]

    found = await InstagramPostLocator().find(make_page(mocker, containers), TARGET)

    assert found == "row3-link"


async def test_waits_for_every_row_before_returning(mocker: MockerFixture):
    containers = [
        make_container(mocker, "row1", count=1),
        make_container(mocker, "row2", delay=0.02),
        make_container(mocker, "row3", error=RuntimeError("slow failure"), delay=0.03),
    ]

    await InstagramPostLocator().find(make_page(mocker, containers), TARGET)

    for container in containers:
        container.locator.return_value.count.assert_awaited_once()


async def test_not_found(mocker: MockerFixture):
    containers = [make_container(mocker, f"row{i}") for i in range(3)]

    assert await InstagramPostLocator().find(make_page(mocker, containers), TARGET) is None


async def test_invalid_target_is_rejected_before_page_access(mocker: MockerFixture):
    page = make_page(mocker, [])

    with pytest.raises(InvalidTargetFormatError):
        await InstagramPostLocator().find(page, TargetPost(url="https://site/explore/"))

    page.locator.assert_not_called()


async def test_less_than_three_rows_is_layout_error(mocker: MockerFixture):
    containers = [make_container(mocker, "row1", count=1), make_container(mocker, "row2")]

    with pytest.raises(UnexpectedLayoutError):
        await InstagramPostLocator().find(make_page(mocker, containers), TARGET)

    containers[0].locator.assert_not_called()
