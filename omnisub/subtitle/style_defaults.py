"""
텍스트 이펙트 기본 스타일 결정 모듈입니다.

역할:
- 프리셋 + 부분 오버라이드 + 명명 위치 → 완성된 ResolvedStyle 생성
- 9개 명명 위치(top/middle/bottom × left/center/right)를 캔버스 좌표와 pivot으로 변환
- 이미 배치된 이펙트에 프리셋을 다시 적용할 때 사용할 속성 목록 생성

순수 함수만 포함하며 호스트 상태를 읽거나 바꾸지 않습니다.

사용 예시:
    >>> resolved = resolve_style({"font_size": 44}, "bottom-center", config.preset("import"), config.canvas)
    >>> (resolved.rect.x, resolved.rect.y, resolved.rect.pivot_y)
    (960.0, 920, 1.0)
"""

from __future__ import annotations

import dataclasses
import logging
from typing import Any, Optional

from omnisub.config.schema import CanvasConfig, StylePresetConfig
from omnisub.subtitle import SHADOW_PROPERTIES, DropShadow, Placement, ResolvedStyle, TextStyle

logger = logging.getLogger(__name__)

DEFAULT_POSITION = "bottom-center"

_VERTICAL_ANCHORS = ("top", "middle", "bottom")
_HORIZONTAL_ANCHORS = ("left", "center", "right")

POSITION_NAMES = tuple(
    f"{vertical}-{horizontal}"
    for vertical in _VERTICAL_ANCHORS
    for horizontal in _HORIZONTAL_ANCHORS
)

_TEXT_STYLE_FIELDS = {f.name for f in dataclasses.fields(TextStyle)}
_PLACEMENT_FIELDS = {f.name for f in dataclasses.fields(Placement)}

# 매칭 서비스/편집기 레코드에서 오는 camelCase 키
_CAMEL_ALIASES = {
    "fontSize": "font_size",
    "fontFamily": "font_family",
    "fontStyle": "font_style",
    "fontVariant": "font_variant",
    "fontWeight": "font_weight",
    "fillGradientStops": "fill_gradient_stops",
    "fillGradientType": "fill_gradient_type",
    "strokeThickness": "stroke_thickness",
    "lineJoin": "line_join",
    "miterLimit": "miter_limit",
    "letterSpacing": "letter_spacing",
    "lineHeight": "line_height",
    "wordWrap": "word_wrap",
    "wordWrapWidth": "word_wrap_width",
    "breakWords": "break_words",
    "whiteSpace": "white_space",
    "textBaseline": "text_baseline",
    "dropShadow": "drop_shadow",
    "dropShadowColor": "drop_shadow_color",
    "dropShadowAlpha": "drop_shadow_alpha",
    "dropShadowAngle": "drop_shadow_angle",
    "dropShadowBlur": "drop_shadow_blur",
    "dropShadowDistance": "drop_shadow_distance",
    "scaleX": "scale_x",
    "scaleY": "scale_y",
}


def named_position(name: str, canvas: CanvasConfig) -> tuple[float, float, float, float]:
    """
    명명 위치를 캔버스 좌표와 pivot으로 변환합니다.

    pivot은 박스의 어느 점을 좌표에 고정할지 나타내므로
    박스 크기와 무관하게 기준점이 정확히 좌표에 놓입니다.
    알 수 없는 이름은 bottom-center로 대체합니다.

    반환값:
        (x, y, pivot_x, pivot_y)
    """
    normalized = (name or "").strip().lower().replace("_", "-")
    if normalized not in POSITION_NAMES:
        logger.warning(f"알 수 없는 위치 '{name}', {DEFAULT_POSITION}으로 대체")
        normalized = DEFAULT_POSITION

    vertical, horizontal = normalized.split("-")

    if horizontal == "left":
        x, pivot_x = canvas.margin, 0.0
    elif horizontal == "right":
        x, pivot_x = canvas.width - canvas.margin, 1.0
    else:
        x, pivot_x = canvas.width / 2, 0.5

    if vertical == "top":
        y, pivot_y = canvas.margin, 0.0
    elif vertical == "middle":
        y, pivot_y = canvas.height / 2, 0.5
    else:
        y, pivot_y = canvas.height - canvas.margin, 1.0

    return x, y, pivot_x, pivot_y


def resolve_style(
    overrides: Optional[dict[str, Any]],
    position: Optional[str],
    preset: StylePresetConfig,
    canvas: CanvasConfig,
) -> ResolvedStyle:
    """
    프리셋과 오버라이드를 합쳐 완성된 스타일 레코드를 생성합니다.

    오버라이드 키는 TextStyle 필드명, drop_shadow* 키, Placement 필드명
    (또는 camelCase 별칭)을 사용할 수 있으며, 알 수 없는 키와 형식이 맞지 않는
    값은 경고 후 무시합니다.

    파라미터:
        overrides: 부분 스타일 오버라이드 (None이면 프리셋 그대로)
        position: 명명 위치. None이면 프리셋의 position 사용
        preset: 진입점별 기본 프리셋
        canvas: 기준 캔버스

    반환값:
        ResolvedStyle: 모든 필드가 채워진 불변 스타일 묶음
    """
    x, y, pivot_x, pivot_y = named_position(position or preset.position, canvas)

    style = TextStyle(
        font_family=preset.font_family,
        font_size=preset.font_size,
        font_style=preset.font_style,
        font_variant=preset.font_variant,
        font_weight=preset.font_weight,
        fill=tuple(preset.fill),
        fill_gradient_stops=tuple(preset.fill_gradient_stops),
        fill_gradient_type=preset.fill_gradient_type,
        stroke=preset.stroke,
        stroke_thickness=preset.stroke_thickness,
        line_join=preset.line_join,
        miter_limit=preset.miter_limit,
        letter_spacing=preset.letter_spacing,
        line_height=preset.line_height,
        leading=preset.leading,
        word_wrap=preset.word_wrap,
        word_wrap_width=preset.word_wrap_width,
        break_words=preset.break_words,
        white_space=preset.white_space,
        align=preset.align,
        text_baseline=preset.text_baseline,
    )
    shadow = DropShadow(
        enabled=preset.drop_shadow,
        color=preset.drop_shadow_color,
        alpha=preset.drop_shadow_alpha,
        angle=preset.drop_shadow_angle,
        blur=preset.drop_shadow_blur,
        distance=preset.drop_shadow_distance,
    )
    rect = Placement(
        x=x,
        y=y,
        pivot_x=pivot_x,
        pivot_y=pivot_y,
        width=preset.box_width,
        height=preset.box_height,
    )

    if not overrides:
        return ResolvedStyle(style=style, shadow=shadow, rect=rect)

    style_changes: dict[str, Any] = {}
    shadow_changes: dict[str, Any] = {}
    rect_changes: dict[str, Any] = {}

    for raw_key, value in overrides.items():
        if value is None:
            continue
        key = _CAMEL_ALIASES.get(raw_key, raw_key)
        if key in _TEXT_STYLE_FIELDS:
            target, changes, field_name = style, style_changes, key
        elif key in SHADOW_PROPERTIES:
            target, changes, field_name = shadow, shadow_changes, SHADOW_PROPERTIES[key]
        elif key in _PLACEMENT_FIELDS:
            target, changes, field_name = rect, rect_changes, key
        else:
            logger.warning(f"알 수 없는 스타일 오버라이드 키 무시: '{raw_key}'")
            continue

        try:
            changes[field_name] = _conform(key, getattr(target, field_name), value)
        except TypeError as exc:
            logger.warning(f"잘못된 스타일 오버라이드 값 무시 '{raw_key}': {exc}")

    return ResolvedStyle(
        style=dataclasses.replace(style, **style_changes),
        shadow=dataclasses.replace(shadow, **shadow_changes),
        rect=dataclasses.replace(rect, **rect_changes),
    )


def style_properties(resolved: ResolvedStyle) -> dict[str, Any]:
    """
    ResolvedStyle을 호스트 단일 속성 setter 이름 → 값으로 분해합니다.

    기존 이펙트에 프리셋을 다시 적용할 때 사용합니다. 배치(rect)는
    사용자가 옮긴 위치를 보존하기 위해 포함하지 않습니다.
    """
    properties = dataclasses.asdict(resolved.style)
    for override_key, shadow_field in SHADOW_PROPERTIES.items():
        properties[override_key] = getattr(resolved.shadow, shadow_field)
    return properties


def normalize_property_value(key: str, value: Any) -> Any:
    """
    fill은 단일 색 문자열과 색 목록을 모두 허용하여 tuple로 정규화합니다.

    에러:
        TypeError: fill / fill_gradient_stops 형식이 맞지 않음
    """
    if key == "fill":
        if isinstance(value, str):
            return (value,)
        if isinstance(value, (list, tuple)) and value and all(isinstance(c, str) for c in value):
            return tuple(value)
        raise TypeError(f"fill은 색 문자열 또는 색 목록이어야 합니다: {value!r}")
    if key == "fill_gradient_stops":
        if isinstance(value, (list, tuple)) and all(_is_number(s) for s in value):
            return tuple(value)
        raise TypeError(f"fill_gradient_stops는 숫자 목록이어야 합니다: {value!r}")
    return value


def _is_number(value: Any) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool)


def _conform(key: str, current: Any, value: Any) -> Any:
    """오버라이드 값을 기존 필드 값과 같은 종류로 맞춥니다. 맞출 수 없으면 TypeError."""
    if isinstance(current, tuple):
        return normalize_property_value(key, value)
    if isinstance(current, bool):
        ok = isinstance(value, bool)
    elif _is_number(current):
        ok = _is_number(value)
    elif isinstance(current, str):
        ok = isinstance(value, str)
    else:
        ok = True
    if not ok:
        raise TypeError(f"{type(current).__name__} 값이 필요합니다: {value!r}")
    return value
