"""
자막 매니저 모듈입니다.

역할:
- SRT 텍스트 임포트: SrtParser → NoHint 배치 → 이펙트 합성 → 호스트 등록
- 매칭 결과 임포트: 매칭 레코드 → Span 변환 → 정책별 배치 → 합성 → 등록
- 트랙 단위 일괄 스타일 변경 (호스트 단일 속성 setter 호출 후 재렌더 요청)
- 핫스왑 설정 업데이트 지원

호스트는 생성자 인자로 주입되며, 전역 상태에서 찾지 않습니다.

사용 예시:
    >>> manager = SubtitleManager(config, document)
    >>> result = manager.import_from_text(srt_text)
    >>> manager.set_font_size(60)
"""

from __future__ import annotations

import dataclasses
import logging
from typing import Any, Iterable, Optional

from omnisub.config.schema import IMPORT_PRESET, MATCHED_PRESET, AppConfig
from omnisub.subtitle import (
    SHADOW_PROPERTIES,
    TEXT_KIND,
    ImportResult,
    Span,
    TextStyle,
    UpdateStatus,
)
from omnisub.subtitle.effect_synthesizer import register_effects, synthesize
from omnisub.subtitle.srt_parser import parse_srt
from omnisub.subtitle.style_defaults import resolve_style, style_properties
from omnisub.subtitle.timestamp import parse_timestamp
from omnisub.timeline import PlacementHint, TimelineError, z_index
from omnisub.timeline.track_allocator import allocate, apply_allocation, hint_for_clip

logger = logging.getLogger(__name__)

# 일괄 변경 가능한 호스트 속성 이름
EDITABLE_PROPERTIES = frozenset(
    {"text"}
    | {f.name for f in dataclasses.fields(TextStyle)}
    | set(SHADOW_PROPERTIES)
)

# 매칭 레코드에서 텍스트를 찾는 키 순서
_MATCH_TEXT_KEYS = ("original_text", "text")

# 선택 클립으로 인정하는 이펙트 종류
_ANCHOR_KINDS = ("video", "audio")

NO_TRACK_MESSAGE = "자막 트랙이 아직 없습니다. 먼저 자막을 추가하세요."
NOTHING_TO_UPDATE_MESSAGE = "업데이트할 자막이 없습니다."


def spans_from_matches(
    matches: Iterable[Any],
    text_key: Optional[str] = None,
) -> tuple[list[Span], int]:
    """
    외부 매칭 서비스 레코드를 Span 목록으로 변환합니다.

    레코드 형식: {"start", "end", "original_text", ["style"]}
    start/end는 초(숫자) 또는 HH:MM:SS,mmm 문자열이며 parse_timestamp()로 변환합니다.

    파라미터:
        matches: 매칭 레코드 목록
        text_key: 표시할 텍스트 키 (예: "translated_text"). 없으면 original_text → text 순서

    반환값:
        (구간 목록, 텍스트가 없어 제외된 레코드 수)
    """
    spans: list[Span] = []
    skipped = 0
    keys = (text_key,) + _MATCH_TEXT_KEYS if text_key else _MATCH_TEXT_KEYS

    for index, record in enumerate(matches):
        if not isinstance(record, dict):
            skipped += 1
            logger.warning(f"매칭 레코드 #{index} 형식 오류 (dict 아님): {type(record).__name__}")
            continue

        text = next((record[key] for key in keys if record.get(key)), None)
        if not text:
            skipped += 1
            logger.warning(f"매칭 레코드 #{index} 텍스트 없음, 건너뜀")
            continue

        style = record.get("style")
        spans.append(
            Span(
                text=str(text),
                start_ms=parse_timestamp(record.get("start")),
                end_ms=parse_timestamp(record.get("end")),
                style_overrides=dict(style) if isinstance(style, dict) else None,
            )
        )

    return spans, skipped


class SubtitleManager:
    """
    자막 배치 엔진의 진입점(facade)입니다.

    임포트 흐름:
        입력 → Span 목록 → allocate() → synthesize() → apply_allocation() → register_effects()

    마지막으로 자막을 채운 트랙을 기억하여 일괄 스타일 변경의 기본 대상으로 사용합니다.
    """

    def __init__(self, config: AppConfig, host: Any) -> None:
        """
        파라미터:
            config (AppConfig): 전체 애플리케이션 설정 객체
            host: 타임라인 호스트 (TimelineDocument 또는 같은 인터페이스)
        """
        self._config = config
        self._host = host
        self._subtitle_track: Optional[int] = None

        logger.info(
            f"SubtitleManager 초기화: "
            f"presets={sorted(config.styles)}, "
            f"default_policy={config.allocation.default_policy}"
        )

    @property
    def subtitle_track(self) -> Optional[int]:
        """마지막으로 자막을 채운 트랙 (없으면 None)."""
        return self._subtitle_track

    # =========================================================================
    # 임포트
    # =========================================================================

    def import_from_text(self, raw_text: str, position: Optional[str] = None) -> ImportResult:
        """
        SRT 텍스트를 파싱하여 가장 높은 사용 트랙 다음 트랙에 추가합니다.

        파라미터:
            raw_text: SRT 원문
            position: 명명 위치 (None이면 import 프리셋 값)
        """
        spans = parse_srt(raw_text)
        return self.import_spans(spans, hint=None, preset_name=IMPORT_PRESET, position=position)

    def import_from_matches(
        self,
        matches: Iterable[Any],
        hint: Optional[PlacementHint] = None,
        position: Optional[str] = None,
        text_key: Optional[str] = None,
    ) -> ImportResult:
        """
        매칭 서비스 결과를 자막으로 추가합니다.

        hint가 없으면 설정의 allocation.default_policy와 현재 선택 클립으로 정책을 정합니다.

        파라미터:
            matches: 매칭 레코드 목록
            hint: 배치 정책 (NoHint / AnchorAbove / DisplaceSwap)
            position: 명명 위치 (None이면 matched 프리셋 값)
            text_key: 표시할 텍스트 키
        """
        spans, skipped = spans_from_matches(matches, text_key=text_key)
        if hint is None:
            hint = self.hint_for_selection()
        result = self.import_spans(spans, hint=hint, preset_name=MATCHED_PRESET, position=position)
        result.skipped += skipped
        return result

    def import_spans(
        self,
        spans: Iterable[Span],
        hint: Optional[PlacementHint] = None,
        preset_name: str = IMPORT_PRESET,
        position: Optional[str] = None,
    ) -> ImportResult:
        """
        구간 목록을 배치하고 합성하여 호스트에 등록합니다.

        유효한 구간이 하나도 없으면 트랙을 만들거나 옮기지 않습니다.
        트랙을 결정할 수 없으면 예외 대신 메시지를 담은 결과를 반환합니다.

        에러:
            KeyError: 등록되지 않은 프리셋 이름
        """
        preset = self._config.preset(preset_name)
        span_list = list(spans)
        valid_spans = [s for s in span_list if s.start_ms >= 0 and s.duration_ms > 0]
        skipped = len(span_list) - len(valid_spans)

        if skipped:
            logger.warning(f"길이가 0 이하이거나 시작이 음수인 구간 {skipped}개 제외")

        if not valid_spans:
            logger.info("추가할 유효한 자막 구간이 없습니다")
            return ImportResult(skipped=skipped, message="추가할 자막이 없습니다.")

        allocation = allocate(len(valid_spans), self._host.track_count, self._host.effects, hint)

        # 호스트를 바꾸기 전에 합성을 끝내야 실패해도 트랙/클립이 그대로 남음
        effects = synthesize(
            valid_spans,
            allocation.track,
            preset,
            self._config.canvas,
            position=position,
        )

        tracks_before = self._host.track_count
        try:
            track = apply_allocation(self._host, allocation)
        except TimelineError as exc:
            logger.error(f"자막 트랙 배치 실패: {exc}")
            return ImportResult(
                policy=allocation.policy,
                skipped=skipped,
                diagnostics=list(allocation.diagnostics),
                message=f"자막을 추가하지 못했습니다: {exc}",
            )

        if track != allocation.track:
            effects = [dataclasses.replace(effect, track=track) for effect in effects]
        register_effects(self._host, effects)
        self._subtitle_track = track

        logger.info(
            f"자막 {len(effects)}개 추가: track={track}, policy={allocation.policy}, "
            f"z_index={z_index(track, self._host.track_count)}"
        )
        return ImportResult(
            effects=effects,
            track=track,
            policy=allocation.policy,
            tracks_created=self._host.track_count - tracks_before,
            relocated=[r.effect_id for r in allocation.relocations],
            skipped=skipped,
            diagnostics=list(allocation.diagnostics),
            message=f"자막 {len(effects)}개를 트랙 {track}에 추가했습니다.",
        )

    def hint_for_selection(self, policy: Optional[str] = None) -> PlacementHint:
        """
        현재 선택된 비디오/오디오 클립 기준의 배치 정책을 생성합니다.

        선택 클립이 없으면 NoHint입니다.

        파라미터:
            policy: "none" | "anchor_above" | "displace_swap" (None이면 설정 기본값)
        """
        selected = self._host.selected_effect
        if selected is not None and selected.kind not in _ANCHOR_KINDS:
            selected = None
        return hint_for_clip(policy or self._config.allocation.default_policy, selected)

    # =========================================================================
    # 일괄 스타일 변경
    # =========================================================================

    def for_all_effects_on_track(
        self,
        track: Optional[int],
        mutator: str,
        value: Any,
    ) -> UpdateStatus:
        """
        트랙 위의 모든 텍스트 이펙트에 단일 속성 setter를 호출하고 재렌더를 요청합니다.

        파라미터:
            track: 대상 트랙 (None이면 마지막으로 자막을 채운 트랙)
            mutator: 호스트 속성 이름 (예: "font_size", "drop_shadow_color")
            value: 설정할 값

        반환값:
            UpdateStatus: 대상이 없으면 updated=0과 안내 메시지

        에러:
            ValueError: 알 수 없는 속성 이름
        """
        return self._update_track(track, {mutator: value})

    def set_font_size(self, size: int, track: Optional[int] = None) -> UpdateStatus:
        return self.for_all_effects_on_track(track, "font_size", size)

    def set_font_family(self, family: str, track: Optional[int] = None) -> UpdateStatus:
        return self.for_all_effects_on_track(track, "font_family", family)

    def set_alignment(self, align: str, track: Optional[int] = None) -> UpdateStatus:
        return self.for_all_effects_on_track(track, "align", align)

    def set_fill(self, color: str | list[str], track: Optional[int] = None) -> UpdateStatus:
        return self.for_all_effects_on_track(track, "fill", color)

    def set_wrap_width(self, width: int, track: Optional[int] = None) -> UpdateStatus:
        return self.for_all_effects_on_track(track, "word_wrap_width", width)

    def set_line_height(self, line_height: float, track: Optional[int] = None) -> UpdateStatus:
        return self.for_all_effects_on_track(track, "line_height", line_height)

    def set_stroke(
        self,
        color: Optional[str] = None,
        thickness: Optional[int] = None,
        track: Optional[int] = None,
    ) -> UpdateStatus:
        """외곽선 색상/두께를 변경합니다. None인 항목은 유지합니다."""
        changes = {"stroke": color, "stroke_thickness": thickness}
        return self._update_track(track, {k: v for k, v in changes.items() if v is not None})

    def set_drop_shadow(
        self,
        enabled: Optional[bool] = None,
        color: Optional[str] = None,
        distance: Optional[float] = None,
        blur: Optional[float] = None,
        alpha: Optional[float] = None,
        track: Optional[int] = None,
    ) -> UpdateStatus:
        """드롭 섀도우 속성을 변경합니다. None인 항목은 유지합니다."""
        changes = {
            "drop_shadow": enabled,
            "drop_shadow_color": color,
            "drop_shadow_distance": distance,
            "drop_shadow_blur": blur,
            "drop_shadow_alpha": alpha,
        }
        return self._update_track(track, {k: v for k, v in changes.items() if v is not None})

    def apply_preset(
        self,
        preset_name: str,
        track: Optional[int] = None,
        overrides: Optional[dict[str, Any]] = None,
    ) -> UpdateStatus:
        """
        프리셋(+오버라이드) 스타일을 트랙 위 텍스트 이펙트에 다시 적용합니다.

        같은 프리셋을 여러 번 적용해도 결과는 같습니다. 배치 위치는 유지합니다.
        """
        resolved = resolve_style(overrides, None, self._config.preset(preset_name), self._config.canvas)
        return self._update_track(track, style_properties(resolved))

    # =========================================================================
    # 기타
    # =========================================================================

    @staticmethod
    def visual_track_position(track: int, total_tracks: int) -> int:
        """트랙의 렌더링 순서 (0이 맨 아래 레이어)."""
        return z_index(track, total_tracks)

    def update_config(self, config: AppConfig) -> None:
        """
        설정을 핫스왑으로 업데이트합니다. 이후 임포트부터 적용됩니다.

        이미 등록된 이펙트의 스타일은 바꾸지 않습니다 (apply_preset 사용).

        파라미터:
            config (AppConfig): 새 설정 객체
        """
        self._config = config
        logger.info(
            f"SubtitleManager 설정 핫스왑: "
            f"default_policy={config.allocation.default_policy}, "
            f"presets={sorted(config.styles)}"
        )

    # =========================================================================
    # 내부 메서드
    # =========================================================================

    def _update_track(self, track: Optional[int], changes: dict[str, Any]) -> UpdateStatus:
        unknown = sorted(set(changes) - EDITABLE_PROPERTIES)
        if unknown:
            raise ValueError(f"변경할 수 없는 속성: {unknown}")

        if track is None:
            track = self._subtitle_track
        if track is None:
            logger.info("일괄 스타일 변경 건너뜀: 자막 트랙 없음")
            return UpdateStatus(updated=0, track=None, message=NO_TRACK_MESSAGE)

        targets = [
            effect for effect in self._host.effects
            if effect.kind == TEXT_KIND and effect.track == track
        ]
        if not targets or not changes:
            logger.info(f"일괄 스타일 변경 건너뜀: 트랙 {track}에 변경 대상 없음")
            return UpdateStatus(updated=0, track=track, message=NOTHING_TO_UPDATE_MESSAGE)

        for effect in targets:
            for name, value in changes.items():
                self._host.set_text_property(effect.id, name, value)

        self._host.compose_at(self._host.timecode)
        logger.info(f"트랙 {track} 텍스트 이펙트 {len(targets)}개 변경: {sorted(changes)}")
        return UpdateStatus(
            updated=len(targets),
            track=track,
            message=f"트랙 {track}의 자막 {len(targets)}개를 업데이트했습니다.",
        )
