class InfrastructureError(Exception):
    """인프라스트럭처 계층에서 발생하는 모든 예외의 기반 클래스입니다."""
    pass


class ScrapperError(InfrastructureError):
    """인기게시물 스크랩 과정에서 발생하는 모든 예외의 기반 클래스입니다.

    키워드 단위로 잡혀서 해당 키워드의 결과로 기록됩니다.
    """
    pass


class AuthenticationError(ScrapperError):
    """로그인 단계의 실패. 배치가 시작되지 않습니다."""
    pass


class InvalidCredentialsError(AuthenticationError):
    """아이디 또는 비밀번호가 잘못되었을 때 발생하는 예외입니다."""

    def __init__(self, message: str = "아이디 또는 비밀번호가 올바르지 않습니다."):
        super().__init__(message)


class AccountDeactivatedError(AuthenticationError):
    """로그인 후 challenge(계정 제한) 페이지로 이동했을 때 발생하는 예외입니다."""

    def __init__(self, message: str = "비활성화되었거나 제한된 계정입니다."):
        super().__init__(message)


class SessionStateError(ScrapperError):
    """세션 상태가 요청한 작업의 전제 조건을 만족하지 않을 때 발생합니다."""
    pass


class NavigationError(ScrapperError):
    """페이지를 열거나 이동하는 중 하위 계층에서 실패했을 때 발생하는 예외입니다."""
    pass


class UnexpectedLayoutError(ScrapperError):
    """헤더 또는 인기게시물 영역을 찾을 수 없을 때 발생하는 예외입니다.

    인스타그램 UI 구조가 변경된 경우 이 에러가 발생할 수 있습니다.
    """
    pass


class InvalidTargetFormatError(ScrapperError):
    """찾을 포스트 URL이 `/p/<id>/` 형식이 아닐 때 발생하는 예외입니다."""
    pass


class ScreenshotError(InfrastructureError):
    """스크린샷 생성과 관련된 모든 예외의 기반 클래스입니다."""
    pass


class RegionNotFoundError(ScreenshotError, ScrapperError):
    """스크린샷 영역의 위치 정보를 얻을 수 없을 때 발생하는 예외입니다."""
    pass
