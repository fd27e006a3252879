from pathlib import Path

import pytest
from playwright.async_api import Error as PlaywrightError

from popular_post_reporter.infrastructure.context import ApplicationContext

FIXTURE_DIR = Path(__file__).parent.parent / "fixtures"


@pytest.fixture
async def application_context():
    """실제 Chromium을 띄우는 ApplicationContext. 브라우저가 설치되지 않았으면 건너뜁니다."""
    context = ApplicationContext(headless=True)
    try:
        await context.__aenter__()
    except PlaywrightError as e:
        await context.__aexit__(None, None, None)
        pytest.skip(f"Chromium을 실행할 수 없습니다: {e}")

    yield context
    await context.__aexit__(None, None, None)


@pytest.fixture
def instagram_tag_html() -> str:
    return (FIXTURE_DIR / "instagram_tag_page.html").read_text(encoding="utf-8")


@pytest.fixture
def instagram_changed_layout_html() -> str:
    return (FIXTURE_DIR / "instagram_tag_page_changed_layout.html").read_text(
        encoding="utf-8"
    )
