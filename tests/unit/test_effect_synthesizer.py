"""
이펙트 합성 단위 테스트

검증 항목:
- 유효한 구간마다 TextEffect 1개 (입력 순서, 고유 id)
- 길이 0 이하 / 음수 시작 구간 제외
- 구간별 스타일 오버라이드 반영
- 등록 중간 실패 시 이번 호출 등록분 롤백
"""

from __future__ import annotations

import itertools

import pytest

from omnisub.config.schema import IMPORT_PRESET, MATCHED_PRESET, AppConfig
from omnisub.subtitle import Span
from omnisub.subtitle.effect_synthesizer import register_effects, synthesize
from omnisub.timeline import TimelineError
from omnisub.timeline.document import TimelineDocument


def _make_config() -> AppConfig:
    return AppConfig()


def _counter_ids():
    counter = itertools.count(1)
    return lambda: f"fx-{next(counter)}"


def test_one_effect_per_valid_span_in_order():
    config = _make_config()
    spans = [Span("A", 0, 2000), Span("B", 2000, 4000)]

    effects = synthesize(spans, 1, config.preset(IMPORT_PRESET), config.canvas)

    assert [e.text for e in effects] == ["A", "B"]
    assert [(e.start_ms, e.duration_ms, e.end_ms) for e in effects] == [(0, 2000, 2000), (2000, 2000, 4000)]
    assert all(e.track == 1 and e.kind == "text" for e in effects)
    assert len({e.id for e in effects}) == 2


def test_invalid_spans_are_not_created(caplog):
    config = _make_config()
    spans = [
        Span("zero", 1000, 1000),
        Span("backwards", 3000, 2000),
        Span("negative", -500, 1000),
        Span("ok", 0, 10),
    ]

    effects = synthesize(spans, 0, config.preset(IMPORT_PRESET), config.canvas)

    assert [e.text for e in effects] == ["ok"]
    assert "3개 구간 제외" in caplog.text


def test_preset_and_position_applied():
    config = _make_config()
    effects = synthesize(
        [Span("آية", 0, 1000)],
        0,
        config.preset(MATCHED_PRESET),
        config.canvas,
        position="top-center",
    )

    effect = effects[0]
    assert effect.style.font_family == "Uthmanic Hafs"
    assert (effect.rect.x, effect.rect.y, effect.rect.pivot_y) == (960, 160, 0.0)


def test_span_style_overrides_take_precedence():
    config = _make_config()
    effects = synthesize(
        [Span("A", 0, 1000, style_overrides={"fill": "#FF0000", "drop_shadow": False})],
        0,
        config.preset(IMPORT_PRESET),
        config.canvas,
    )

    assert effects[0].style.fill == ("#FF0000",)
    assert effects[0].shadow.enabled is False


def test_custom_id_factory():
    config = _make_config()
    effects = synthesize(
        [Span("A", 0, 1), Span("B", 1, 2)],
        0,
        config.preset(IMPORT_PRESET),
        config.canvas,
        id_factory=_counter_ids(),
    )
    assert [e.id for e in effects] == ["fx-1", "fx-2"]


def test_synthesize_does_not_touch_host():
    config = _make_config()
    document = TimelineDocument()
    synthesize([Span("A", 0, 1)], 5, config.preset(IMPORT_PRESET), config.canvas)
    assert document.effects == []


# =============================================================================
# register_effects 테스트
# =============================================================================

def test_register_adds_each_effect():
    config = _make_config()
    document = TimelineDocument()
    document.add_track()
    effects = synthesize([Span("A", 0, 1), Span("B", 1, 2)], 0, config.preset(IMPORT_PRESET), config.canvas)

    register_effects(document, effects)

    assert [e.id for e in document.effects] == [e.id for e in effects]


def test_register_rolls_back_on_failure():
    """중복 id로 두 번째 등록이 실패하면 첫 번째 등록도 제거됩니다."""
    config = _make_config()
    document = TimelineDocument()
    document.add_track()
    effects = synthesize(
        [Span("A", 0, 1), Span("B", 1, 2)],
        0,
        config.preset(IMPORT_PRESET),
        config.canvas,
        id_factory=lambda: "same-id",
    )

    with pytest.raises(TimelineError):
        register_effects(document, effects)

    assert document.effects == []
