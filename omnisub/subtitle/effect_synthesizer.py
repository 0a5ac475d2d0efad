"""
텍스트 이펙트 합성 모듈입니다.

역할:
- Span 목록 + 대상 트랙 + 스타일 프리셋 → TextEffect 목록 생성
- 길이가 0 이하이거나 시작 시각이 음수인 구간은 생성하지 않고 로그로 남김
- 생성된 이펙트를 호스트에 하나씩 등록 (중간 실패 시 이미 등록한 이펙트 제거)

synthesize()는 호스트를 변경하지 않으므로 단독으로 테스트할 수 있습니다.
"""

from __future__ import annotations

import logging
import uuid
from typing import Any, Callable, Iterable, Optional

from omnisub.config.schema import CanvasConfig, StylePresetConfig
from omnisub.subtitle import Span, TextEffect
from omnisub.subtitle.style_defaults import resolve_style

logger = logging.getLogger(__name__)


def generate_effect_id() -> str:
    return uuid.uuid4().hex


def synthesize(
    spans: Iterable[Span],
    track: int,
    preset: StylePresetConfig,
    canvas: CanvasConfig,
    position: Optional[str] = None,
    id_factory: Callable[[], str] = generate_effect_id,
) -> list[TextEffect]:
    """
    구간 목록을 완성된 TextEffect 목록으로 변환합니다.

    파라미터:
        spans: 입력 구간 (순서 유지)
        track: 배치 트랙 (호출자가 유효성을 보장)
        preset: 진입점 기본 스타일
        canvas: 기준 캔버스
        position: 명명 위치 (None이면 프리셋 값)
        id_factory: 이펙트 id 생성 함수

    반환값:
        list[TextEffect]: 유효한 구간마다 하나씩, 입력 순서대로
    """
    effects: list[TextEffect] = []
    rejected = 0

    for index, span in enumerate(spans):
        if span.start_ms < 0 or span.duration_ms <= 0:
            rejected += 1
            logger.warning(
                f"유효하지 않은 구간 제외 (#{index}): "
                f"start={span.start_ms}ms, end={span.end_ms}ms, text='{span.text[:30]}'"
            )
            continue

        resolved = resolve_style(span.style_overrides, position, preset, canvas)
        effects.append(
            TextEffect(
                id=id_factory(),
                track=track,
                start_ms=span.start_ms,
                duration_ms=span.duration_ms,
                text=span.text,
                style=resolved.style,
                shadow=resolved.shadow,
                rect=resolved.rect,
            )
        )

    if rejected:
        logger.warning(f"이펙트 합성: {rejected}개 구간 제외")
    logger.debug(f"이펙트 합성 완료: {len(effects)}개, track={track}")
    return effects


def register_effects(host: Any, effects: list[TextEffect]) -> list[TextEffect]:
    """
    이펙트를 호스트에 하나씩 등록합니다.

    등록 도중 실패하면 이번 호출에서 등록한 이펙트를 제거한 뒤
    원래 예외를 다시 던집니다.

    반환값:
        list[TextEffect]: 등록된 이펙트 (입력과 동일)
    """
    registered: list[TextEffect] = []
    try:
        for effect in effects:
            host.add_effect(effect)
            registered.append(effect)
    except Exception:
        logger.error(
            f"이펙트 등록 실패, 등록된 {len(registered)}개 롤백", exc_info=True
        )
        for effect in reversed(registered):
            host.remove_effect(effect.id)
        raise
    return registered
