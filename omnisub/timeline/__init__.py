"""
타임라인 모듈 패키지

공통 데이터 타입:
- TimelineTrack: 트랙(레이어) 정보
- TimelineItem: 텍스트가 아닌 타임라인 이펙트 (비디오/오디오 클립 등)
- NoHint / AnchorAbove / DisplaceSwap: 트랙 배치 정책 (PlacementHint)
- Relocation / Allocation: 트랙 배치 결정 결과

호스트 인터페이스 (TimelineDocument가 구현, 다른 호스트는 같은 메서드를 제공하면 됨):
    track_count, effects, selected_effect, timecode,
    add_track(), add_effect(effect), remove_effect(effect_id),
    set_effect_track(effect_id, track), set_text_property(effect_id, name, value),
    get_file(file_hash), compose_at(timecode)

트랙 인덱스 0은 편집 UI의 맨 위 행이지만 렌더링 순서로는 맨 아래 레이어입니다.
"""

from dataclasses import dataclass, field
from typing import Optional, Union


class TimelineError(Exception):
    """타임라인 상태가 요청을 수행할 수 없을 때 발생하는 에러입니다."""
    pass


def z_index(track: int, track_count: int) -> int:
    """트랙 인덱스의 렌더링 순서를 반환합니다 (값이 클수록 위에 그려짐)."""
    return track_count - 1 - track


@dataclass
class TimelineTrack:
    """트랙(레이어) 정보입니다."""
    id: str
    visible: bool = True
    locked: bool = False
    muted: bool = False


@dataclass
class TimelineItem:
    """
    텍스트가 아닌 타임라인 이펙트입니다.

    배치 엔진은 id, kind, track만 사용합니다.

    필드:
        id: 고유 식별자
        kind: "video" | "audio" | "image" 등
        track: 트랙 인덱스
        start_ms: 타임라인 시작 위치 (밀리초)
        duration_ms: 길이 (밀리초)
        file_hash: 미디어 저장소 콘텐츠 해시
        name: 표시 이름
    """
    id: str
    kind: str
    track: int
    start_ms: float = 0
    duration_ms: float = 0
    file_hash: Optional[str] = None
    name: str = ""


# =============================================================================
# 배치 정책 (tagged variant)
# =============================================================================

@dataclass(frozen=True)
class NoHint:
    """가장 높은 사용 트랙 다음 트랙에 배치합니다 (빈 타임라인이면 0)."""
    pass


@dataclass(frozen=True)
class AnchorAbove:
    """선택 클립 트랙(track) + 1, 편집 UI에서 클립 바로 다음 행에 배치합니다."""
    track: int


@dataclass(frozen=True)
class DisplaceSwap:
    """
    선택 클립(effect_id, track)을 track + 1로 옮기고 자막을 track에 배치합니다.

    선택 클립 외의 다른 이펙트는 이동하지 않습니다.
    """
    effect_id: str
    track: int


PlacementHint = Union[NoHint, AnchorAbove, DisplaceSwap]


@dataclass(frozen=True)
class Relocation:
    """기존 이펙트의 트랙 이동 요청입니다."""
    effect_id: str
    from_track: int
    to_track: int


@dataclass
class Allocation:
    """
    트랙 배치 결정 결과입니다.

    호출자는 이펙트 등록 전에 tracks_to_create → relocations 순서로
    호스트에 적용해야 합니다 (apply_allocation).

    필드:
        track: 새 텍스트 배치 대상 트랙 (배치할 구간이 없으면 None)
        tracks_to_create: 새로 만들어야 하는 트랙 수
        relocations: 이동해야 하는 기존 이펙트 목록
        policy: 실제 적용된 정책 이름
        diagnostics: 결정 과정에서 발생한 진단 메시지
    """
    track: Optional[int]
    tracks_to_create: int = 0
    relocations: list[Relocation] = field(default_factory=list)
    policy: str = "none"
    diagnostics: list[str] = field(default_factory=list)
