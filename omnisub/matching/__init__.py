"""
음성 매칭 모듈 패키지

선택된 클립의 오디오를 추출하여 외부 매칭 서비스로 보내고,
돌아온 구간 레코드를 자막으로 임포트합니다.

공통 데이터 타입:
- MatchRequest: 매칭 서비스 요청 파라미터 (범위 지정)
- MatchOutcome: 워크플로우 결과 (성공/실패, 임포트 결과)
- MatchProgress: 진행 단계 통보
"""

from dataclasses import dataclass, field
from typing import Any, Optional

from omnisub.subtitle import ImportResult

# 진행 단계 (1부터 시작)
STAGE_EXTRACT = 1
STAGE_SEND = 2
STAGE_PROCESS = 3
STAGE_IMPORT = 4
TOTAL_STAGES = 4

STAGE_LABELS = {
    STAGE_EXTRACT: "오디오 추출",
    STAGE_SEND: "매칭 서비스 전송",
    STAGE_PROCESS: "매칭 결과 처리",
    STAGE_IMPORT: "자막 추가",
}


class MatchingError(Exception):
    """매칭 워크플로우 외부 연동 실패의 기본 예외."""


class MediaNotFoundError(MatchingError):
    """선택 클립이 없거나 클립의 미디어 파일을 찾을 수 없을 때 발생합니다."""


class AudioExtractionError(MatchingError):
    """ffmpeg 오디오 추출 실패 시 발생합니다."""


class MatchServiceError(MatchingError):
    """
    매칭 서비스 요청 실패 시 발생합니다.

    속성:
        status_code: HTTP 상태 코드 (연결 실패 등 응답이 없으면 None)
    """

    def __init__(self, message: str, status_code: Optional[int] = None) -> None:
        super().__init__(message)
        self.status_code = status_code


@dataclass(frozen=True)
class MatchRequest:
    """
    매칭 서비스 요청 범위입니다.

    필드:
        start_surah / end_surah: 검색할 장 범위 (필수)
        start_ayah / end_ayah: 절 범위 (선택, None이면 전송하지 않음)
    """
    start_surah: int
    end_surah: int
    start_ayah: Optional[int] = None
    end_ayah: Optional[int] = None

    def form_fields(self) -> dict[str, str]:
        """multipart 폼 필드로 변환합니다 (None 값 제외)."""
        fields = {
            "start_surah": self.start_surah,
            "end_surah": self.end_surah,
            "start_ayah": self.start_ayah,
            "end_ayah": self.end_ayah,
        }
        return {key: str(value) for key, value in fields.items() if value is not None}


@dataclass(frozen=True)
class MatchProgress:
    """진행 단계 통보 (stage/total, 표시 문구)."""
    stage: int
    total: int
    label: str


@dataclass
class MatchOutcome:
    """
    매칭 워크플로우 결과입니다.

    필드:
        ok: 성공 여부
        message: 사용자 표시용 메시지
        match_count: 서비스가 반환한 레코드 수
        result: 자막 임포트 결과 (실패 시 None)
        error: 실패 원인 예외
    """
    ok: bool
    message: str
    match_count: int = 0
    result: Optional[ImportResult] = None
    error: Optional[Exception] = None
    matches: list[dict[str, Any]] = field(default_factory=list)
