from dataclasses import dataclass
from pathlib import Path


class Event:
    """모든 도메인 이벤트의 기본 클래스 (마커 인터페이스 역할)"""

    pass


@dataclass(frozen=True)
class ScrapBatchStarted(Event):
    """배치 출력 디렉토리가 준비되고 스크랩이 시작되었을 때 발생하는 이벤트"""

    directory: Path
    total: int


@dataclass(frozen=True)
class KeywordScrapCompleted(Event):
    """키워드 하나의 처리가 끝났을 때 발생하는 이벤트"""

    index: int
    tag: str
    status: str  # 포함, 미포함, 에러


@dataclass(frozen=True)
class ScrapBatchCompleted(Event):
    """배치의 모든 키워드 처리가 끝났을 때 발생하는 이벤트"""

    directory: Path
    total: int
    failed: int
