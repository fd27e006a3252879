"""로깅 및 트레이싱 유틸리티"""

import functools
import inspect
import sys
import time
from contextlib import contextmanager
from pathlib import Path
from typing import Any, Callable

from loguru import logger

CONSOLE_FORMAT = (
    "<green>{time:YYYY-MM-DD HH:mm:ss.SSS}</green> | <level>{level: <8}</level> | "
    "<cyan>{name}</cyan>:<cyan>{function}</cyan>:<cyan>{line}</cyan> - "
    "<level>{message}</level> | <yellow>{extra}</yellow>"
)


def configure_logging(log_file: Path | None, level: str = "DEBUG") -> None:
    """콘솔(stderr)과 파일 로그 싱크를 설정합니다.

    파일 로그는 JSON으로 직렬화되며 10MB마다 교체, 7일간 보관됩니다.
    """
    logger.remove()
    if sys.stderr:
        logger.add(sys.stderr, level=level, format=CONSOLE_FORMAT)

    if log_file is not None:
        log_file.parent.mkdir(parents=True, exist_ok=True)
        logger.add(
            log_file,
            level="DEBUG",
            rotation="10 MB",
            retention="7 days",
            encoding="utf-8",
            backtrace=True,
            diagnose=True,
            serialize=True,
        )


def _describe_call(func: Callable, args: tuple, kwargs: dict[str, Any]) -> str:
    # 메서드이면 self는 제외
    shown = args[1:] if args and inspect.ismethod(getattr(args[0], func.__name__, None)) else args
    parts = [repr(a) for a in shown] + [f"{k}={v!r}" for k, v in kwargs.items()]
    return f"{func.__module__}.{func.__qualname__}({', '.join(parts)})"


def log_function_call(func: Callable) -> Callable:
    """함수의 시작, 종료, 실행 시간을 로깅하는 데코레이터"""

    @functools.wraps(func)
    async def async_wrapper(*args, **kwargs):
        call = _describe_call(func, args, kwargs)
        logger.debug(f"→ {call}")

        start_time = time.perf_counter()
        try:
            result = await func(*args, **kwargs)
        except Exception as e:
            elapsed = time.perf_counter() - start_time
            logger.error(
                f"✗ {func.__qualname__} failed after {elapsed:.3f}s: {e.__class__.__name__}: {e}"
            )
            raise
        logger.debug(
            f"← {func.__qualname__} completed in {time.perf_counter() - start_time:.3f}s"
        )
        return result

    @functools.wraps(func)
    def sync_wrapper(*args, **kwargs):
        call = _describe_call(func, args, kwargs)
        logger.debug(f"→ {call}")

        start_time = time.perf_counter()
        try:
            result = func(*args, **kwargs)
        except Exception as e:
            elapsed = time.perf_counter() - start_time
            logger.error(
                f"✗ {func.__qualname__} failed after {elapsed:.3f}s: {e.__class__.__name__}: {e}"
            )
            raise
        logger.debug(
            f"← {func.__qualname__} completed in {time.perf_counter() - start_time:.3f}s"
        )
        return result

    if inspect.iscoroutinefunction(func):
        return async_wrapper
    return sync_wrapper


@contextmanager
def log_step(step_name: str, **extra_context):
    """단계별 작업을 로깅하는 컨텍스트 매니저

    Usage:
        with log_step("인기게시물 탐색", keyword="shoes"):
            ...
    """
    logger.info(f"▶ {step_name}", **extra_context)
    start_time = time.perf_counter()

    try:
        yield
    except Exception as e:
        elapsed = time.perf_counter() - start_time
        logger.error(
            f"✗ {step_name} failed after {elapsed:.3f}s: {e.__class__.__name__}: {e}",
            duration=elapsed,
            error_type=e.__class__.__name__,
            **extra_context,
        )
        raise

    elapsed = time.perf_counter() - start_time
    logger.info(
        f"✓ {step_name} completed in {elapsed:.3f}s", duration=elapsed, **extra_context
    )


class PerformanceTracker:
    """구간별 소요 시간을 기록하는 클래스"""

    def __init__(self, name: str):
        self.name = name
        self.start_time: float | None = None
        self.metrics: dict[str, float] = {}

    def start(self):
        self.start_time = time.perf_counter()
        logger.debug(f"Performance tracking started: {self.name}")

    def checkpoint(self, checkpoint_name: str):
        """중간 지점 기록"""
        if self.start_time is None:
            logger.warning(f"PerformanceTracker.start() not called for {self.name}")
            return

        elapsed = time.perf_counter() - self.start_time
        self.metrics[checkpoint_name] = elapsed
        logger.debug(
            f"Checkpoint '{checkpoint_name}' reached",
            tracker=self.name,
            elapsed=f"{elapsed:.3f}s",
        )

    def end(self) -> dict[str, float]:
        """추적 종료 및 메트릭 반환"""
        if self.start_time is None:
            logger.warning(f"PerformanceTracker.start() not called for {self.name}")
            return {}

        self.metrics["total"] = time.perf_counter() - self.start_time
        logger.info(
            f"Performance metrics for {self.name}",
            **{k: f"{v:.3f}s" for k, v in self.metrics.items()},
        )
        return self.metrics


def log_with_context(**context_fields):
    """함수 실행 동안 로그에 컨텍스트 필드를 추가하는 데코레이터

    Usage:
        @log_with_context(platform="instagram")
        async def explore_keyword(...):
            ...
    """

    def decorator(func: Callable) -> Callable:
        @functools.wraps(func)
        async def async_wrapper(*args, **kwargs):
            with logger.contextualize(**context_fields):
                return await func(*args, **kwargs)

        @functools.wraps(func)
        def sync_wrapper(*args, **kwargs):
            with logger.contextualize(**context_fields):
                return func(*args, **kwargs)

        if inspect.iscoroutinefunction(func):
            return async_wrapper
        return sync_wrapper

    return decorator
