"""
omnisub 설정 스키마 정의 모듈입니다.

역할:
- Pydantic v2 BaseModel 기반으로 config.yaml의 전체 구조를 타입 안전하게 정의
- 각 섹션(system, canvas, styles, allocation, matching, export)을
  독립적인 중첩 모델로 분리하여 유지보수성 확보
- 진입점별 자막 기본 스타일(프리셋)을 이름으로 관리

사용 예시:
    >>> from omnisub.config.schema import AppConfig
    >>> config = AppConfig(**yaml_data)
    >>> print(config.styles["import"].font_size)
    38
"""

from __future__ import annotations

import logging

from pydantic import BaseModel, Field, field_validator, model_validator

logger = logging.getLogger(__name__)

# 파일 임포트(라이브러리/데모 삽입)에 사용하는 프리셋 이름
IMPORT_PRESET = "import"
# 매칭 서비스 결과 임포트에 사용하는 프리셋 이름
MATCHED_PRESET = "matched"

# 허용되는 트랙 배치 정책
ALLOWED_POLICIES = ("none", "anchor_above", "displace_swap")


# =============================================================================
# system 섹션: 시스템 전역 설정
# =============================================================================

class SystemConfig(BaseModel):
    """
    시스템 전역 설정을 정의하는 모델입니다.

    역할:
    - 로깅 레벨 및 포맷 지정
    - 세션 식별자 관리
    """
    # 로그 출력 레벨
    log_level: str = Field(default="INFO", description="로그 레벨 (DEBUG | INFO | WARNING | ERROR)")
    # 로그 출력 포맷
    log_format: str = Field(default="json", description="로그 포맷 (json | text)")
    # 로그 파일 저장 디렉토리 경로
    log_dir: str = Field(default="output/logs", description="로그 저장 디렉토리")
    # 세션 고유 식별자 (빈 문자열이면 UUID로 자동 생성)
    session_id: str = Field(default="", description="세션 ID (비어있으면 UUID 자동생성)")

    @field_validator("log_level")
    @classmethod
    def validate_log_level(cls, value: str) -> str:
        """로그 레벨이 유효한 Python 로깅 레벨인지 검증합니다."""
        allowed_levels = ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL")
        upper_value = value.upper()
        if upper_value not in allowed_levels:
            error_message = f"log_level은 {allowed_levels} 중 하나여야 합니다. 입력값: '{value}'"
            raise ValueError(error_message)
        return upper_value

    @field_validator("log_format")
    @classmethod
    def validate_log_format(cls, value: str) -> str:
        """로그 포맷이 지원되는 형식인지 검증합니다."""
        allowed_formats = ("json", "text")
        if value not in allowed_formats:
            error_message = f"log_format은 {allowed_formats} 중 하나여야 합니다. 입력값: '{value}'"
            raise ValueError(error_message)
        return value


# =============================================================================
# canvas 섹션: 기준 캔버스 크기
# =============================================================================

class CanvasConfig(BaseModel):
    """
    자막 배치 좌표 계산에 사용하는 기준 캔버스 설정입니다.

    9개 명명 위치(top/middle/bottom × left/center/right)는
    이 크기와 safe margin으로부터 계산됩니다.
    """
    # 캔버스 가로 픽셀
    width: int = Field(default=1920, description="캔버스 가로 (px)")
    # 캔버스 세로 픽셀
    height: int = Field(default=1080, description="캔버스 세로 (px)")
    # 가장자리 여백 (bottom-center 기준 y = height - margin)
    margin: int = Field(default=160, description="가장자리 여백 (px)")

    @model_validator(mode="after")
    def validate_margin(self) -> "CanvasConfig":
        """여백이 캔버스 절반을 넘지 않는지 검증합니다."""
        if self.width <= 0 or self.height <= 0:
            raise ValueError(f"캔버스 크기는 양수여야 합니다. 입력값: {self.width}x{self.height}")
        if not 0 <= self.margin * 2 < min(self.width, self.height):
            raise ValueError(
                f"margin은 0 이상이고 캔버스 짧은 변의 절반 미만이어야 합니다. 입력값: {self.margin}"
            )
        return self


# =============================================================================
# styles 섹션: 진입점별 자막 기본 스타일
# =============================================================================

class StylePresetConfig(BaseModel):
    """
    텍스트 이펙트 기본 스타일 프리셋입니다.

    역할:
    - 폰트, 채우기, 외곽선, 줄바꿈 등 타이포그래피 기본값
    - 드롭 섀도우 기본값
    - 배치 박스 크기 및 명명 위치
    """
    # 타이포그래피
    font_family: str = Field(default="Arial", description="폰트 패밀리")
    font_size: int = Field(default=38, description="폰트 크기")
    font_style: str = Field(default="normal", description="폰트 스타일")
    font_variant: str = Field(default="normal", description="폰트 variant")
    font_weight: str = Field(default="normal", description="폰트 굵기")
    fill: list[str] = Field(default=["#FFFFFF"], description="채우기 색상 목록 (2개 이상이면 그라디언트)")
    fill_gradient_stops: list[float] = Field(default=[], description="그라디언트 정지점 (0.0~1.0)")
    fill_gradient_type: int = Field(default=0, description="그라디언트 유형 (0=세로, 1=가로)")
    stroke: str = Field(default="#000000", description="외곽선 색상")
    stroke_thickness: int = Field(default=2, description="외곽선 두께 (0이면 비활성)")
    line_join: str = Field(default="miter", description="외곽선 연결 방식")
    miter_limit: int = Field(default=10, description="miter 한계값")
    letter_spacing: float = Field(default=0, description="자간")
    line_height: float = Field(default=0, description="행간 (0이면 자동)")
    leading: float = Field(default=0, description="추가 행간")
    word_wrap: bool = Field(default=True, description="자동 줄바꿈 여부")
    word_wrap_width: int = Field(default=500, description="줄바꿈 너비 (px)")
    break_words: bool = Field(default=False, description="단어 중간 줄바꿈 허용")
    white_space: str = Field(default="normal", description="공백 처리 방식")
    align: str = Field(default="center", description="가로 정렬 (left | center | right)")
    text_baseline: str = Field(default="alphabetic", description="텍스트 베이스라인")

    # 드롭 섀도우
    drop_shadow: bool = Field(default=True, description="드롭 섀도우 활성화")
    drop_shadow_color: str = Field(default="#000000", description="섀도우 색상")
    drop_shadow_alpha: float = Field(default=1.0, description="섀도우 투명도 (0.0~1.0)")
    drop_shadow_angle: float = Field(default=0.5, description="섀도우 각도 (radian)")
    drop_shadow_blur: float = Field(default=0, description="섀도우 블러")
    drop_shadow_distance: float = Field(default=2, description="섀도우 거리")

    # 배치
    position: str = Field(default="bottom-center", description="명명 위치 (예: bottom-center)")
    box_width: int = Field(default=100, description="배치 박스 가로 (px)")
    box_height: int = Field(default=20, description="배치 박스 세로 (px)")

    @field_validator("font_size", "word_wrap_width")
    @classmethod
    def validate_positive(cls, value: int) -> int:
        """크기 값이 양수인지 검증합니다."""
        if value <= 0:
            raise ValueError(f"양수여야 합니다. 입력값: {value}")
        return value

    @field_validator("drop_shadow_alpha")
    @classmethod
    def validate_alpha(cls, value: float) -> float:
        """섀도우 투명도가 0.0~1.0 범위인지 검증합니다."""
        if not 0.0 <= value <= 1.0:
            raise ValueError(f"drop_shadow_alpha는 0.0~1.0 범위여야 합니다. 입력값: {value}")
        return value

    @field_validator("align")
    @classmethod
    def validate_align(cls, value: str) -> str:
        """정렬 값이 허용된 값인지 검증합니다."""
        allowed = ("left", "center", "right", "justify")
        if value not in allowed:
            raise ValueError(f"align은 {allowed} 중 하나여야 합니다. 입력값: '{value}'")
        return value


def _default_presets() -> dict[str, StylePresetConfig]:
    """진입점별 기본 프리셋을 생성합니다."""
    return {
        # SRT 파일 임포트 / 데모 삽입
        IMPORT_PRESET: StylePresetConfig(),
        # 매칭 서비스 결과 임포트 (테마 폰트, 외곽선/섀도우 활성)
        MATCHED_PRESET: StylePresetConfig(
            font_family="Uthmanic Hafs",
            font_size=60,
            stroke_thickness=3,
            drop_shadow=True,
            word_wrap_width=1700,
            line_height=60,
            box_width=1800,
            box_height=200,
        ),
    }


# =============================================================================
# allocation 섹션: 트랙 배치 정책
# =============================================================================

class AllocationConfig(BaseModel):
    """
    매칭 결과 임포트 시 사용할 기본 트랙 배치 정책입니다.

    none: 가장 높은 사용 트랙 + 1
    anchor_above: 선택 클립 트랙 + 1
    displace_swap: 선택 클립을 한 칸 올리고 자막이 원래 자리 차지
    """
    default_policy: str = Field(default="anchor_above", description="기본 배치 정책")

    @field_validator("default_policy")
    @classmethod
    def validate_policy(cls, value: str) -> str:
        """배치 정책이 허용된 값인지 검증합니다."""
        if value not in ALLOWED_POLICIES:
            error_message = f"default_policy는 {ALLOWED_POLICIES} 중 하나여야 합니다. 입력값: '{value}'"
            raise ValueError(error_message)
        return value


# =============================================================================
# matching 섹션: 외부 매칭 서비스 및 오디오 추출
# =============================================================================

class MatchingConfig(BaseModel):
    """
    외부 오디오-텍스트 매칭 서비스 연결 설정입니다.

    역할:
    - 서비스 엔드포인트 및 요청 타임아웃
    - ffmpeg 오디오 추출 파라미터
    """
    # 매칭 서비스 기본 URL (환경변수 OMNISUB_MATCHING_ENDPOINT로 오버라이드 가능)
    endpoint: str = Field(default="http://localhost:5000", description="매칭 서비스 URL")
    # HTTP 요청 타임아웃 (초)
    timeout_sec: float = Field(default=300.0, description="요청 타임아웃 (초)")
    # ffmpeg 실행 파일 경로
    ffmpeg_path: str = Field(default="ffmpeg", description="ffmpeg 실행 파일")
    # 추출 오디오 코덱
    audio_codec: str = Field(default="mp3", description="추출 오디오 코덱")
    # 추출 오디오 비트레이트
    audio_bitrate: str = Field(default="192k", description="추출 오디오 비트레이트")
    # 추출 오디오 채널 수
    audio_channels: int = Field(default=2, description="추출 오디오 채널 수")

    @field_validator("endpoint")
    @classmethod
    def validate_endpoint(cls, value: str) -> str:
        """엔드포인트가 http(s) URL인지 검증하고 끝의 '/'를 제거합니다."""
        if not value.startswith(("http://", "https://")):
            raise ValueError(f"endpoint는 http:// 또는 https://로 시작해야 합니다. 입력값: '{value}'")
        return value.rstrip("/")


# =============================================================================
# export 섹션: 자막 파일 내보내기
# =============================================================================

class ExportConfig(BaseModel):
    """자막 트랙 내보내기 설정입니다."""
    # 저장할 포맷 목록
    format: list[str] = Field(default=["srt"], description="저장 포맷 목록 (srt | vtt)")
    # 자막 파일 출력 디렉토리
    output_dir: str = Field(default="output/subtitles", description="자막 파일 출력 디렉토리")


# =============================================================================
# 최상위 AppConfig
# =============================================================================

class AppConfig(BaseModel):
    """
    애플리케이션 전체 설정을 통합하는 최상위 모델입니다.

    역할:
    - config.yaml의 모든 섹션을 하나의 타입 안전한 객체로 통합
    - 각 섹션이 누락된 경우 기본값으로 자동 생성
    - import/matched 프리셋이 항상 존재하도록 보장

    사용 예시:
        >>> config = AppConfig(**{"styles": {"import": {"font_size": 44}}})
        >>> config.styles["import"].font_size
        44
        >>> config.styles["matched"].font_family
        'Uthmanic Hafs'
    """
    system: SystemConfig = Field(default_factory=SystemConfig, description="시스템 설정")
    canvas: CanvasConfig = Field(default_factory=CanvasConfig, description="캔버스 설정")
    styles: dict[str, StylePresetConfig] = Field(default_factory=_default_presets, description="스타일 프리셋")
    allocation: AllocationConfig = Field(default_factory=AllocationConfig, description="트랙 배치 설정")
    matching: MatchingConfig = Field(default_factory=MatchingConfig, description="매칭 서비스 설정")
    export: ExportConfig = Field(default_factory=ExportConfig, description="내보내기 설정")

    @field_validator("styles", mode="before")
    @classmethod
    def merge_preset_defaults(cls, value: object) -> object:
        """기본 프리셋 이름에 대한 부분 설정은 해당 프리셋 기본값 위에 덮어씁니다."""
        if not isinstance(value, dict):
            return value
        defaults = _default_presets()
        merged = {}
        for name, preset in value.items():
            if name in defaults and isinstance(preset, dict):
                merged[name] = {**defaults[name].model_dump(), **preset}
            else:
                merged[name] = preset
        return merged

    @model_validator(mode="after")
    def ensure_required_presets(self) -> "AppConfig":
        """누락된 기본 프리셋을 채워 넣습니다."""
        defaults = _default_presets()
        for name, preset in defaults.items():
            if name not in self.styles:
                logger.debug(f"스타일 프리셋 '{name}' 누락, 기본값 사용")
                self.styles[name] = preset
        return self

    def preset(self, name: str) -> StylePresetConfig:
        """
        이름으로 스타일 프리셋을 조회합니다.

        에러:
            KeyError: 등록되지 않은 프리셋 이름
        """
        try:
            return self.styles[name]
        except KeyError:
            raise KeyError(f"등록되지 않은 스타일 프리셋: '{name}' (사용 가능: {sorted(self.styles)})") from None
