"""
자막 모듈 패키지

공통 데이터 타입:
- Span: 효과로 변환되기 전의 일시적인 시간 구간 텍스트
- TextStyle / DropShadow / Placement: 불변 스타일 레코드
- ResolvedStyle: StyleDefaults가 반환하는 완성 스타일 묶음
- TextEffect: 타임라인에 등록되는 텍스트 이펙트
"""

from dataclasses import dataclass, field
from typing import Any, Optional

# 텍스트 이펙트 kind 태그
TEXT_KIND = "text"

# 호스트 속성 이름 → DropShadow 필드
SHADOW_PROPERTIES = {
    "drop_shadow": "enabled",
    "drop_shadow_color": "color",
    "drop_shadow_alpha": "alpha",
    "drop_shadow_angle": "angle",
    "drop_shadow_blur": "blur",
    "drop_shadow_distance": "distance",
}


@dataclass(frozen=True)
class Span:
    """
    시간 구간 텍스트입니다. 파싱 직후 합성에 소비되며 저장되지 않습니다.

    필드:
        text: 표시할 텍스트 (여러 줄이면 '\\n'으로 연결)
        start_ms: 시작 시각 (밀리초, 0 이상)
        end_ms: 종료 시각 (밀리초, start_ms보다 커야 유효)
        style_overrides: 부분 스타일 오버라이드 (TextStyle/DropShadow/Placement 필드명 → 값)
    """
    text: str
    start_ms: float
    end_ms: float
    style_overrides: Optional[dict[str, Any]] = None

    @property
    def duration_ms(self) -> float:
        """구간 길이 (밀리초)."""
        return self.end_ms - self.start_ms


@dataclass(frozen=True)
class TextStyle:
    """
    텍스트 타이포그래피 레코드입니다.

    fill이 2개 이상이면 fill_gradient_stops/fill_gradient_type에 따라
    그라디언트로 칠합니다.
    """
    font_family: str
    font_size: int
    font_style: str = "normal"
    font_variant: str = "normal"
    font_weight: str = "normal"
    fill: tuple[str, ...] = ("#FFFFFF",)
    fill_gradient_stops: tuple[float, ...] = ()
    fill_gradient_type: int = 0
    stroke: str = "#000000"
    stroke_thickness: int = 2
    line_join: str = "miter"
    miter_limit: int = 10
    letter_spacing: float = 0
    line_height: float = 0
    leading: float = 0
    word_wrap: bool = True
    word_wrap_width: int = 500
    break_words: bool = False
    white_space: str = "normal"
    align: str = "center"
    text_baseline: str = "alphabetic"


@dataclass(frozen=True)
class DropShadow:
    """드롭 섀도우 레코드입니다."""
    enabled: bool = True
    color: str = "#000000"
    alpha: float = 1.0
    angle: float = 0.5
    blur: float = 0
    distance: float = 2


@dataclass(frozen=True)
class Placement:
    """
    캔버스 배치 사각형입니다.

    필드:
        x, y: 캔버스 좌표 (px). pivot이 가리키는 박스 위의 점이 이 좌표에 놓임
        pivot_x, pivot_y: 박스 기준점 (0.0~1.0)
        scale_x, scale_y: 배율
        width, height: 박스 크기 (px)
        rotation: 회전 (radian)
    """
    x: float
    y: float
    pivot_x: float = 0.5
    pivot_y: float = 1.0
    scale_x: float = 1.0
    scale_y: float = 1.0
    width: float = 100
    height: float = 20
    rotation: float = 0


@dataclass(frozen=True)
class ResolvedStyle:
    """StyleDefaults.resolve()가 반환하는 완성 스타일 묶음입니다."""
    style: TextStyle
    shadow: DropShadow
    rect: Placement


@dataclass(frozen=True)
class TextEffect:
    """
    타임라인에 등록되는 텍스트 이펙트입니다.

    등록 이후에는 호스트가 단일 원본이며, 모든 변경은
    호스트의 속성 setter를 통해 effect id로 이루어집니다.

    필드:
        id: 고유 식별자
        track: 트랙 인덱스
        start_ms: 타임라인 시작 위치 (밀리초)
        duration_ms: 길이 (밀리초, 양수)
        text: 표시 텍스트
        style / shadow / rect: 스타일 레코드
        kind: 항상 "text"
    """
    id: str
    track: int
    start_ms: float
    duration_ms: float
    text: str
    style: TextStyle
    shadow: DropShadow
    rect: Placement
    kind: str = field(default=TEXT_KIND, init=False)

    @property
    def end_ms(self) -> float:
        """종료 시각 (밀리초)."""
        return self.start_ms + self.duration_ms


@dataclass
class ImportResult:
    """
    자막 임포트 결과입니다.

    필드:
        effects: 등록된 텍스트 이펙트
        track: 배치된 트랙 (아무것도 추가하지 않았으면 None)
        policy: 적용된 배치 정책 이름
        tracks_created: 새로 만든 트랙 수
        relocated: 트랙을 옮긴 기존 이펙트 id 목록
        skipped: 제외된 입력 수 (형식 오류, 길이 0 이하 등)
        diagnostics: 배치 진단 메시지
        message: 사용자 표시용 상태 메시지
    """
    effects: list[TextEffect] = field(default_factory=list)
    track: Optional[int] = None
    policy: str = "none"
    tracks_created: int = 0
    relocated: list[str] = field(default_factory=list)
    skipped: int = 0
    diagnostics: list[str] = field(default_factory=list)
    message: str = ""


@dataclass
class UpdateStatus:
    """
    일괄 스타일 변경 결과입니다. 변경할 대상이 없어도 에러가 아닌 상태로 반환됩니다.

    필드:
        updated: 변경된 이펙트 수
        track: 대상 트랙 (결정하지 못했으면 None)
        message: 사용자 표시용 상태 메시지
    """
    updated: int
    track: Optional[int]
    message: str

    @property
    def ok(self) -> bool:
        return self.updated > 0
