import re
from collections.abc import Iterable
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path

# --- Value Objects ---

_LINE_TERMINATORS = re.compile(r"[\r\n]+")


def remove_line_terminators(text: str) -> str:
    """엑셀 등에서 붙여넣은 값에 섞인 CR/LF 문자를 제거합니다."""
    return _LINE_TERMINATORS.sub("", text)


def normalize_entries(entries: Iterable[str]) -> list[str]:
    """줄바꿈 문자를 제거하고 빈 값은 버립니다. 입력 순서는 유지됩니다."""
    cleaned = (remove_line_terminators(entry) for entry in entries)
    return [entry for entry in cleaned if entry]


@dataclass(frozen=True)
class Keyword:
    """검색 키워드(해시태그)를 나타내는 Value Object"""

    text: str


@dataclass(frozen=True)
class TargetPost:
    """인기게시물 안에서 찾아야 할 포스트 URL을 나타내는 Value Object"""

    url: str


# --- Enums for Status ---


class MatchStatus(Enum):
    FOUND = "found"
    NOT_FOUND = "not_found"
    ERROR = "error"


class ScrapStatus(Enum):
    FOUND = "포함"
    NOT_FOUND = "미포함"
    ERROR = "에러"


# --- Results ---


@dataclass(frozen=True)
class MatchOutcome:
    """하나의 (키워드, 포스트) 쌍에 대한 탐색 결과

    FOUND이면 해당 요소에 하이라이트가 적용된 상태입니다.
    ERROR는 탐색 자체가 실패한 경우로, 결과 집계에서는 미포함과 동일하게 취급됩니다.
    """

    target: TargetPost
    status: MatchStatus
    reason: str | None = None

    @property
    def is_found(self) -> bool:
        return self.status is MatchStatus.FOUND


@dataclass(frozen=True)
class ScrapResult:
    """키워드 하나에 대한 스크랩 결과"""

    tag: str
    is_popular_post_included: bool
    screenshot: Path | None
    outcomes: list[MatchOutcome] = field(default_factory=list)

    @property
    def status(self) -> ScrapStatus:
        return (
            ScrapStatus.FOUND if self.is_popular_post_included else ScrapStatus.NOT_FOUND
        )


@dataclass(frozen=True)
class ScrapFailure:
    """키워드 하나의 처리가 실패했을 때 기록되는 결과"""

    tag: str
    error: Exception

    @property
    def status(self) -> ScrapStatus:
        return ScrapStatus.ERROR

    @property
    def message(self) -> str:
        return str(self.error) or self.error.__class__.__name__


@dataclass(frozen=True)
class BatchResult:
    """하나의 스크랩 배치 실행 결과. `result`는 키워드 입력 순서를 따릅니다."""

    directory: Path
    result: list[ScrapResult | ScrapFailure]

    @property
    def found(self) -> list[ScrapResult]:
        return [
            r
            for r in self.result
            if isinstance(r, ScrapResult) and r.is_popular_post_included
        ]

    @property
    def not_found(self) -> list[ScrapResult]:
        return [
            r
            for r in self.result
            if isinstance(r, ScrapResult) and not r.is_popular_post_included
        ]

    @property
    def failures(self) -> list[ScrapFailure]:
        return [r for r in self.result if isinstance(r, ScrapFailure)]
