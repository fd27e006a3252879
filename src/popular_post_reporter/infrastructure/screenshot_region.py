from dataclasses import dataclass
from typing import Final

from loguru import logger
from playwright.async_api import Error as PlaywrightError
from playwright.async_api import FloatRect, Locator

from popular_post_reporter.infrastructure.exceptions import RegionNotFoundError

# 요소가 렌더링되지 않았으면 null
MARGIN_BOX_SCRIPT: Final = """
(element) => {
    if (!element.isConnected || element.getClientRects().length === 0) {
        return null;
    }
    const rect = element.getBoundingClientRect();
    const style = window.getComputedStyle(element);
    const px = (value) => parseFloat(value) || 0;
    return {
        left: rect.left + window.scrollX - px(style.marginLeft),
        top: rect.top + window.scrollY - px(style.marginTop),
        right: rect.right + window.scrollX + px(style.marginRight),
        bottom: rect.bottom + window.scrollY + px(style.marginBottom),
    };
}
"""


@dataclass(frozen=True)
class MarginBox:
    """요소의 margin 영역 (문서 좌표 기준)"""

    left: float
    top: float
    right: float
    bottom: float


async def read_margin_box(element: Locator) -> MarginBox | None:
    """요소의 margin box를 읽습니다. 요소가 없거나 렌더링되지 않았으면 None."""
    if await element.count() == 0:
        return None
    try:
        box = await element.evaluate(MARGIN_BOX_SCRIPT)
    except PlaywrightError as e:
        logger.warning(
            "요소 위치 정보 조회 실패",
            error=str(e),
            error_type=e.__class__.__name__,
            event_name="margin_box_read_failed",
        )
        return None
    if box is None:
        return None
    return MarginBox(**box)


def region_between(header_box: MarginBox | None, last_box: MarginBox | None) -> FloatRect:
    """헤더의 좌상단부터 마지막 게시물 줄의 우하단까지의 영역을 계산합니다."""
    if header_box is None:
        raise RegionNotFoundError("헤더 영역의 위치를 찾을 수 없어 스크린샷 영역을 계산할 수 없습니다.")
    if last_box is None:
        raise RegionNotFoundError(
            "마지막 인기게시물 줄의 위치를 찾을 수 없어 스크린샷 영역을 계산할 수 없습니다."
        )

    width = last_box.right - header_box.left
    height = last_box.bottom - header_box.top
    if width <= 0 or height <= 0:
        raise RegionNotFoundError(
            f"스크린샷 영역이 올바르지 않습니다 (width={width}, height={height})."
        )

    return {
        "x": header_box.left,
        "y": header_box.top,
        "width": width,
        "height": height,
    }


class ScreenshotRegionCalculator:
    """헤더와 인기게시물 줄로부터 스크린샷 clip 영역을 계산합니다."""

    async def calculate(self, header: Locator, candidates: list[Locator]) -> FloatRect:
        if not candidates:
            raise RegionNotFoundError("인기게시물 줄이 없어 스크린샷 영역을 계산할 수 없습니다.")

        header_box = await read_margin_box(header)
        last_box = await read_margin_box(candidates[-1])
        region = region_between(header_box, last_box)

        logger.debug(
            "스크린샷 영역 계산 완료",
            header_box=header_box,
            last_candidate_box=last_box,
            region=region,
            event_name="screenshot_region_calculated",
        )
        return region
