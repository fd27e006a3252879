"""환경 정보 수집 및 로깅 유틸리티"""

import platform
from importlib import metadata
from typing import Any, Dict


def _package_version(name: str) -> str:
    try:
        return metadata.version(name)
    except metadata.PackageNotFoundError:
        return "not installed"


def get_environment_info() -> Dict[str, Any]:
    """현재 실행 환경의 상세 정보를 수집합니다.

    Returns:
        환경 정보를 담은 딕셔너리
    """
    return {
        "os": {
            "system": platform.system(),  # Darwin, Windows, Linux
            "release": platform.release(),
            "machine": platform.machine(),  # arm64, x86_64
        },
        "python": {
            "implementation": platform.python_implementation(),
            "version": platform.python_version(),
        },
        "packages": {
            "playwright": _package_version("playwright"),
            "loguru": _package_version("loguru"),
        },
    }


def format_environment_info(env_info: Dict[str, Any]) -> str:
    """환경 정보를 사람이 읽기 쉬운 형식으로 포맷합니다."""
    lines = ["=" * 60, "Environment Information", "=" * 60]

    os_info = env_info.get("os", {})
    lines.append("\n[Operating System]")
    lines.append(f"  System: {os_info.get('system', 'Unknown')}")
    lines.append(f"  Release: {os_info.get('release', 'Unknown')}")
    lines.append(f"  Machine: {os_info.get('machine', 'Unknown')}")

    python_info = env_info.get("python", {})
    lines.append("\n[Python]")
    lines.append(
        f"  {python_info.get('implementation', 'Python')} {python_info.get('version', '?')}"
    )

    packages = env_info.get("packages", {})
    if packages:
        lines.append("\n[Packages]")
        for name, version in packages.items():
            lines.append(f"  {name}: {version}")

    lines.append("\n" + "=" * 60)
    return "\n".join(lines)
