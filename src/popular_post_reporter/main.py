import argparse
import asyncio
import getpass
import sys
from pathlib import Path

from loguru import logger

from popular_post_reporter import bootstrap
from popular_post_reporter.application.scrap_targets import (
    ScrapTargets,
    load_lines,
    load_scrap_targets,
)
from popular_post_reporter.domain.events import KeywordScrapCompleted
from popular_post_reporter.domain.model import BatchResult, ScrapFailure
from popular_post_reporter.infrastructure.config import ScrapperSettings
from popular_post_reporter.infrastructure.context import ApplicationContext
from popular_post_reporter.infrastructure.environment import (
    format_environment_info,
    get_environment_info,
)
from popular_post_reporter.infrastructure.exceptions import AuthenticationError
from popular_post_reporter.infrastructure.logging_utils import configure_logging
from popular_post_reporter.infrastructure.message_bus import FunctionHandler

EXIT_OK = 0
EXIT_ERROR = 1
EXIT_AUTH_FAILED = 2
EXIT_PARTIAL_FAILURE = 3


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="popular-post-reporter",
        description="해시태그 인기게시물 상위 9개 안에 포스트가 포함되는지 확인하고 스크린샷을 저장합니다.",
    )
    source = parser.add_mutually_exclusive_group(required=True)
    source.add_argument(
        "--targets",
        type=Path,
        help="키워드<TAB>URL 형식의 시트 파일",
    )
    source.add_argument(
        "--keywords",
        type=Path,
        help="한 줄에 키워드 하나씩 적힌 파일 (--urls 필요)",
    )
    parser.add_argument("--urls", type=Path, help="한 줄에 포스트 URL 하나씩 적힌 파일")
    parser.add_argument("--output", type=Path, help="스크린샷 저장 루트 디렉토리")
    parser.add_argument("--username", help="Instagram 아이디 (기본값: INSTAGRAM_USERNAME)")
    parser.add_argument(
        "--headed", action="store_true", help="브라우저 창을 띄워서 실행합니다"
    )
    return parser


def read_targets(args: argparse.Namespace, parser: argparse.ArgumentParser) -> ScrapTargets:
    if args.targets is not None:
        return load_scrap_targets(args.targets)
    if args.urls is None:
        parser.error("--keywords 를 사용할 때는 --urls 가 필요합니다.")
    return ScrapTargets(keywords=load_lines(args.keywords), urls=load_lines(args.urls))


def format_summary(batch: BatchResult) -> str:
    lines = [f"저장 위치: {batch.directory}"]
    for index, item in enumerate(batch.result, start=1):
        if isinstance(item, ScrapFailure):
            detail = item.message
        else:
            detail = str(item.screenshot) if item.screenshot else "-"
        lines.append(f"{index:>3}. [{item.status.value}] {item.tag}  {detail}")
    return "\n".join(lines)


async def run(args: argparse.Namespace, targets: ScrapTargets, settings: ScrapperSettings) -> int:
    username = args.username or settings.username
    if not username:
        username = input("Instagram 아이디: ").strip()
    password = settings.password or getpass.getpass("Instagram 비밀번호: ")
    output_root = args.output or settings.output_dir

    async with ApplicationContext(headless=settings.headless and not args.headed) as context:
        application = bootstrap.bootstrap(context, settings)

        async def report_progress(event: KeywordScrapCompleted) -> None:
            print(f"[{event.index}/{len(targets.keywords)}] {event.tag}: {event.status}")

        application.bus.subscribe_to_event(
            KeywordScrapCompleted, FunctionHandler(report_progress)
        )

        try:
            try:
                await application.driver.authenticate(username, password)
            except AuthenticationError as e:
                logger.error(f"로그인 실패: {e}", event_name="login_failed")
                print(f"로그인 실패: {e}", file=sys.stderr)
                return EXIT_AUTH_FAILED

            batch = await application.orchestrator.run(
                targets.keywords, targets.urls, output_root
            )
        finally:
            await application.cleanup()

    print(format_summary(batch))
    return EXIT_PARTIAL_FAILURE if batch.failures else EXIT_OK


def main(argv: list[str] | None = None) -> int:
    """메인 애플리케이션 진입점"""
    parser = build_parser()
    args = parser.parse_args(argv)

    try:
        settings = ScrapperSettings.from_env()
    except ValueError as e:
        parser.error(str(e))

    configure_logging(settings.log_file, level="INFO")
    logger.info("\n" + format_environment_info(get_environment_info()))

    try:
        targets = read_targets(args, parser)
    except OSError as e:
        parser.error(f"입력 파일을 읽을 수 없습니다: {e}")
    if not targets.keywords or not targets.urls:
        parser.error("키워드와 포스트 URL이 각각 하나 이상 필요합니다.")

    try:
        return asyncio.run(run(args, targets, settings))
    except KeyboardInterrupt:
        logger.info("Application interrupted. Exiting.")
        return EXIT_ERROR
    except Exception:
        logger.exception("Critical error during scrap")
        return EXIT_ERROR


if __name__ == "__main__":
    sys.exit(main())
