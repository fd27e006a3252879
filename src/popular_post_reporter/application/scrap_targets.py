from dataclasses import dataclass
from pathlib import Path

from popular_post_reporter.domain.model import normalize_entries


@dataclass(frozen=True)
class ScrapTargets:
    """스크랩 입력. 키워드와 찾아야 할 포스트 URL 목록"""

    keywords: list[str]
    urls: list[str]


def parse_scrap_targets(text: str) -> ScrapTargets:
    """스프레드시트에서 복사한 두 열(키워드, URL)을 파싱합니다.

    행은 줄바꿈, 셀은 탭으로 구분됩니다. 두 열은 서로 독립적인 목록이라
    키워드만 있는 행이나 URL만 있는 행도 허용되며, 빈 셀은 버려집니다.
    """
    keywords: list[str] = []
    urls: list[str] = []

    for row in text.split("\n"):
        cells = row.split("\t")
        keywords.append(cells[0])
        if len(cells) > 1:
            urls.append(cells[1])

    return ScrapTargets(
        keywords=normalize_entries(c.strip() for c in keywords),
        urls=normalize_entries(c.strip() for c in urls),
    )


def load_scrap_targets(path: Path) -> ScrapTargets:
    return parse_scrap_targets(path.read_text(encoding="utf-8"))


def load_lines(path: Path) -> list[str]:
    """한 줄에 하나씩 적힌 목록 파일을 읽습니다."""
    return normalize_entries(
        line.strip() for line in path.read_text(encoding="utf-8").splitlines()
    )
