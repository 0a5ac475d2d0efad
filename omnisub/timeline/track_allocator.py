"""
자막 트랙 배치 모듈입니다.

역할:
- 새 자막 묶음이 들어갈 트랙을 배치 정책(NoHint / AnchorAbove / DisplaceSwap)에 따라 결정
- 필요한 트랙 생성 수와 기존 클립 이동을 계산 (allocate: 순수 함수)
- 결정을 호스트에 적용하고 범위를 벗어난 트랙은 clamp (apply_allocation)

트랙 목록은 항상 이펙트를 배정하기 전에 늘립니다. 배정 후에 늘리지 않습니다.

사용 예시:
    >>> allocation = allocate(2, host.track_count, host.effects, AnchorAbove(track=0))
    >>> track = apply_allocation(host, allocation)
"""

from __future__ import annotations

import logging
from typing import Any, Iterable, Optional

from omnisub.timeline import (
    Allocation,
    AnchorAbove,
    DisplaceSwap,
    NoHint,
    PlacementHint,
    Relocation,
    TimelineError,
)

logger = logging.getLogger(__name__)

# 정책 이름 (설정 값과 동일)
POLICY_NONE = "none"
POLICY_ANCHOR_ABOVE = "anchor_above"
POLICY_DISPLACE_SWAP = "displace_swap"


def allocate(
    span_count: int,
    track_count: int,
    effects: Iterable[Any],
    hint: Optional[PlacementHint] = None,
) -> Allocation:
    """
    자막 묶음의 대상 트랙과 필요한 트랙 변경을 결정합니다.

    정책:
    - NoHint: max(기존 이펙트 트랙) + 1, 빈 타임라인이면 0
    - AnchorAbove(K): K + 1
    - DisplaceSwap(id, K): 클립을 K + 1로 옮기고 자막은 K

    호스트 상태는 읽기만 하며 변경하지 않습니다.

    파라미터:
        span_count: 배치할 구간 수 (0이면 아무 변경도 요청하지 않음)
        track_count: 현재 트랙 수
        effects: 현재 타임라인 이펙트 스냅샷 (id, kind, track 속성 사용)
        hint: 배치 정책 (None이면 NoHint)

    반환값:
        Allocation: 대상 트랙, 생성할 트랙 수, 이동 목록, 진단 메시지
    """
    hint = hint or NoHint()
    snapshot = list(effects)
    diagnostics: list[str] = []

    if span_count <= 0:
        return Allocation(track=None, policy=_policy_name(hint))

    if isinstance(hint, (AnchorAbove, DisplaceSwap)) and hint.track < 0:
        diagnostics.append(f"선택 클립 트랙이 음수({hint.track}), 기본 정책으로 대체")
        hint = NoHint()

    if isinstance(hint, DisplaceSwap):
        clip = next((e for e in snapshot if e.id == hint.effect_id), None)
        if clip is None:
            diagnostics.append(
                f"이동할 클립 '{hint.effect_id}'를 찾을 수 없어 anchor_above로 대체"
            )
            hint = AnchorAbove(track=hint.track)
        elif clip.track != hint.track:
            diagnostics.append(
                f"클립 '{clip.id}' 트랙 불일치 (요청 {hint.track}, 실제 {clip.track}), 실제 트랙 사용"
            )
            hint = DisplaceSwap(effect_id=clip.id, track=clip.track)

    relocations: list[Relocation] = []

    if isinstance(hint, DisplaceSwap):
        target = hint.track
        relocations.append(
            Relocation(effect_id=hint.effect_id, from_track=hint.track, to_track=hint.track + 1)
        )
        required_tracks = hint.track + 2
    elif isinstance(hint, AnchorAbove):
        target = hint.track + 1
        required_tracks = target + 1
    else:
        used_tracks = [e.track for e in snapshot]
        target = max(used_tracks) + 1 if used_tracks else 0
        required_tracks = target + 1

    allocation = Allocation(
        track=target,
        tracks_to_create=max(0, required_tracks - track_count),
        relocations=relocations,
        policy=_policy_name(hint),
        diagnostics=diagnostics,
    )

    for message in diagnostics:
        logger.warning(f"트랙 배치 진단: {message}")
    logger.debug(
        f"트랙 배치 결정: policy={allocation.policy}, track={target}, "
        f"create={allocation.tracks_to_create}, relocate={len(relocations)}"
    )
    return allocation


def apply_allocation(host: Any, allocation: Allocation) -> int:
    """
    배치 결정을 호스트에 적용하고 최종 대상 트랙을 반환합니다.

    적용 순서:
    1. 트랙 생성 (add_track)
    2. 기존 클립 이동 (set_effect_track)
    3. 호스트 트랙 수를 다시 읽어 대상 트랙이 범위를 벗어나면 마지막 트랙으로 clamp

    파라미터:
        host: 호스트 (track_count, add_track, set_effect_track 제공)
        allocation: allocate() 결과

    반환값:
        int: 이펙트를 등록할 유효한 트랙 인덱스

    에러:
        TimelineError: 배치할 구간이 없거나 트랙 생성 후에도 트랙이 하나도 없을 때
    """
    if allocation.track is None:
        raise TimelineError("배치할 구간이 없어 트랙을 결정하지 않았습니다")

    before = host.track_count
    for _ in range(allocation.tracks_to_create):
        host.add_track()
    if allocation.tracks_to_create:
        logger.info(f"트랙 추가: {before} → {host.track_count}")

    for relocation in allocation.relocations:
        if relocation.to_track >= host.track_count:
            message = (
                f"클립 '{relocation.effect_id}' 이동 대상 트랙 {relocation.to_track}이 "
                f"존재하지 않아 이동을 건너뜀 (트랙 수 {host.track_count})"
            )
            logger.error(message)
            allocation.diagnostics.append(message)
            continue
        host.set_effect_track(relocation.effect_id, relocation.to_track)
        logger.info(
            f"클립 트랙 이동: {relocation.effect_id} "
            f"{relocation.from_track} → {relocation.to_track}"
        )

    track_count = host.track_count
    if track_count <= 0:
        raise TimelineError("트랙 생성에 실패하여 배치할 트랙이 없습니다")

    track = allocation.track
    if track >= track_count:
        clamped = track_count - 1
        message = (
            f"트랙 {track}이 트랙 수({track_count})를 초과하여 "
            f"마지막 트랙 {clamped}으로 clamp"
        )
        logger.error(message)
        allocation.diagnostics.append(message)
        track = clamped

    return track


def parse_policy(name: Optional[str]) -> str:
    """
    정책 이름을 정규화합니다 ("anchor-above" → "anchor_above").

    에러:
        ValueError: 알 수 없는 정책 이름
    """
    normalized = (name or POLICY_NONE).strip().lower().replace("-", "_")
    if normalized not in (POLICY_NONE, POLICY_ANCHOR_ABOVE, POLICY_DISPLACE_SWAP):
        raise ValueError(f"알 수 없는 배치 정책: '{name}'")
    return normalized


def hint_for_clip(policy: str, clip: Optional[Any]) -> PlacementHint:
    """
    정책 이름과 선택 클립으로 PlacementHint를 생성합니다.

    선택 클립이 없으면 어떤 정책이든 NoHint가 됩니다.
    """
    policy = parse_policy(policy)
    if clip is None or policy == POLICY_NONE:
        return NoHint()
    if policy == POLICY_DISPLACE_SWAP:
        return DisplaceSwap(effect_id=clip.id, track=clip.track)
    return AnchorAbove(track=clip.track)


def _policy_name(hint: PlacementHint) -> str:
    if isinstance(hint, DisplaceSwap):
        return POLICY_DISPLACE_SWAP
    if isinstance(hint, AnchorAbove):
        return POLICY_ANCHOR_ABOVE
    return POLICY_NONE
