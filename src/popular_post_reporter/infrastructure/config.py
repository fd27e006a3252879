"""실행 설정

환경 변수에서 값을 읽고, 없으면 기본값을 사용합니다.
계정 정보는 파일로 저장하지 않습니다.
"""

from __future__ import annotations

import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Mapping

DEFAULT_OUTPUT_DIR = Path.home() / "Downloads" / "popular-post-reporter"
DEFAULT_LOGIN_TIMEOUT_MS = 30 * 1000

USER_AGENT = "Mozilla/5.0 (Macintosh; Intel Mac OS X 10_15_7) AppleWebKit/537.36 (KHTML, like Gecko) Chrome/131.0.0.0 Safari/537.36"


def _as_bool(value: str) -> bool:
    return value.strip().lower() in ("1", "true", "yes", "on")


def browser_context_options() -> dict[str, Any]:
    """스크랩용 BrowserContext 생성 옵션"""
    return {
        "viewport": {"width": 1920, "height": 1080},
        "locale": "en-GB",
        "user_agent": USER_AGENT,
        "extra_http_headers": {"Accept-Language": "en"},
    }


@dataclass(frozen=True)
class ScrapperSettings:
    output_dir: Path = DEFAULT_OUTPUT_DIR
    headless: bool = True
    login_timeout_ms: int = DEFAULT_LOGIN_TIMEOUT_MS
    log_file: Path = field(default_factory=lambda: DEFAULT_OUTPUT_DIR / "debug.log")
    username: str | None = None
    password: str | None = field(default=None, repr=False)

    @classmethod
    def from_env(cls, environ: Mapping[str, str] | None = None) -> ScrapperSettings:
        """환경 변수로부터 설정을 만듭니다.

        - REPORTER_OUTPUT_DIR: 스크린샷 저장 루트 디렉토리
        - REPORTER_HEADLESS: "false"이면 브라우저 창을 띄웁니다
        - REPORTER_LOGIN_TIMEOUT_MS: 로그인 후 페이지 이동 대기 시간
        - REPORTER_LOG_FILE: 로그 파일 경로
        - INSTAGRAM_USERNAME / INSTAGRAM_PASSWORD: 로그인 계정
        """
        env = os.environ if environ is None else environ

        output_dir = Path(
            env.get("REPORTER_OUTPUT_DIR", str(DEFAULT_OUTPUT_DIR))
        ).expanduser()
        log_file = Path(
            env.get("REPORTER_LOG_FILE", str(output_dir / "debug.log"))
        ).expanduser()

        raw_timeout = env.get("REPORTER_LOGIN_TIMEOUT_MS", str(DEFAULT_LOGIN_TIMEOUT_MS))
        try:
            login_timeout_ms = int(raw_timeout)
        except ValueError:
            raise ValueError(
                f"REPORTER_LOGIN_TIMEOUT_MS는 정수여야 합니다: {raw_timeout!r}"
            ) from None
        if login_timeout_ms <= 0:
            raise ValueError("REPORTER_LOGIN_TIMEOUT_MS는 0보다 커야 합니다.")

        return cls(
            output_dir=output_dir,
            headless=_as_bool(env.get("REPORTER_HEADLESS", "true")),
            login_timeout_ms=login_timeout_ms,
            log_file=log_file,
            username=env.get("INSTAGRAM_USERNAME") or None,
            password=env.get("INSTAGRAM_PASSWORD") or None,
        )
