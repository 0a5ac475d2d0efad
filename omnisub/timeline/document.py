"""
인메모리 타임라인 문서 모듈입니다.

역할:
- 트랙 목록, 이펙트 컬렉션, 선택 상태를 보관하는 호스트 구현
- 트랙 생성, 이펙트 등록/삭제, 트랙 이동, 텍스트 단일 속성 setter 제공
- 콘텐츠 해시 → 미디어 파일 조회, compose_at() 재렌더 요청 기록
- 변경 시 구독자 통보 (이벤트 이름, 페이로드)
- JSON 프로젝트 파일 로드/저장

모든 텍스트 이펙트 변경은 setter를 거치며, 이 문서가 유일한 원본입니다.

사용 예시:
    >>> document = TimelineDocument.load("project.json")
    >>> document.add_track()
    >>> document.set_text_property(effect_id, "font_size", 60)
    >>> document.save("project.json")
"""

from __future__ import annotations

import dataclasses
import json
import logging
import uuid
from pathlib import Path
from typing import Any, Callable, Optional, Union

from omnisub.subtitle import (
    SHADOW_PROPERTIES,
    TEXT_KIND,
    DropShadow,
    Placement,
    TextEffect,
    TextStyle,
)
from omnisub.subtitle.style_defaults import normalize_property_value
from omnisub.timeline import TimelineError, TimelineItem, TimelineTrack

logger = logging.getLogger(__name__)

# 프로젝트 파일 포맷 버전
DOCUMENT_VERSION = 1

# 문서 변경 콜백 타입: (이벤트 이름, 페이로드) -> None
DocumentChangeCallback = Callable[[str, dict], None]

AnyEffect = Union[TextEffect, TimelineItem]

_TEXT_STYLE_FIELDS = {f.name for f in dataclasses.fields(TextStyle)}
_PLACEMENT_FIELDS = {f.name for f in dataclasses.fields(Placement)}


class TimelineDocument:
    """
    트랙 목록과 이펙트 컬렉션을 하나의 가변 문서로 관리하는 호스트입니다.

    이펙트는 등록 순서를 유지합니다. 텍스트 이펙트는 불변 값이므로
    setter는 새 레코드로 교체합니다.
    """

    def __init__(
        self,
        tracks: Optional[list[TimelineTrack]] = None,
        media: Optional[dict[str, str]] = None,
    ) -> None:
        self._tracks: list[TimelineTrack] = list(tracks or [])
        self._effects: dict[str, AnyEffect] = {}
        self._selected_id: Optional[str] = None
        self._media: dict[str, str] = dict(media or {})
        self._timecode: float = 0
        self._render_requests: list[float] = []
        self._subscribers: list[DocumentChangeCallback] = []

    # =========================================================================
    # 조회
    # =========================================================================

    @property
    def track_count(self) -> int:
        return len(self._tracks)

    @property
    def tracks(self) -> list[TimelineTrack]:
        return list(self._tracks)

    @property
    def effects(self) -> list[AnyEffect]:
        """현재 이펙트 스냅샷 (등록 순서)."""
        return list(self._effects.values())

    @property
    def selected_effect(self) -> Optional[AnyEffect]:
        if self._selected_id is None:
            return None
        return self._effects.get(self._selected_id)

    @property
    def timecode(self) -> float:
        """현재 재생 위치 (밀리초)."""
        return self._timecode

    @property
    def render_requests(self) -> list[float]:
        """compose_at()으로 요청된 타임코드 목록."""
        return list(self._render_requests)

    def get_effect(self, effect_id: str) -> AnyEffect:
        """
        에러:
            KeyError: 존재하지 않는 이펙트
        """
        try:
            return self._effects[effect_id]
        except KeyError:
            raise KeyError(f"이펙트를 찾을 수 없습니다: {effect_id}") from None

    def text_effects_on_track(self, track: int) -> list[TextEffect]:
        return [
            effect for effect in self._effects.values()
            if effect.kind == TEXT_KIND and effect.track == track
        ]

    def get_file(self, file_hash: str) -> Optional[Path]:
        """콘텐츠 해시에 해당하는 미디어 파일 경로를 반환합니다 (없으면 None)."""
        path = self._media.get(file_hash)
        return Path(path) if path else None

    # =========================================================================
    # 변경
    # =========================================================================

    def subscribe(self, callback: DocumentChangeCallback) -> None:
        self._subscribers.append(callback)

    def add_track(self) -> int:
        """트랙을 맨 끝에 추가하고 새 인덱스를 반환합니다."""
        self._tracks.append(TimelineTrack(id=uuid.uuid4().hex))
        index = len(self._tracks) - 1
        self._notify("track_added", {"track": index})
        return index

    def add_media(self, file_hash: str, path: str | Path) -> None:
        self._media[file_hash] = str(path)

    def add_effect(self, effect: AnyEffect) -> None:
        """
        이펙트를 등록합니다.

        에러:
            TimelineError: 트랙 인덱스가 범위를 벗어나거나 id가 중복될 때
        """
        self._check_track(effect.track)
        if effect.id in self._effects:
            raise TimelineError(f"이미 등록된 이펙트 id: {effect.id}")
        self._effects[effect.id] = effect
        self._notify("effect_added", {"id": effect.id, "kind": effect.kind, "track": effect.track})

    def remove_effect(self, effect_id: str) -> None:
        self.get_effect(effect_id)
        del self._effects[effect_id]
        if self._selected_id == effect_id:
            self._selected_id = None
        self._notify("effect_removed", {"id": effect_id})

    def select(self, effect_id: Optional[str]) -> None:
        if effect_id is not None:
            self.get_effect(effect_id)
        self._selected_id = effect_id

    def set_timecode(self, timecode: float) -> None:
        self._timecode = max(0, timecode)

    def set_effect_track(self, effect_id: str, track: int) -> None:
        """
        이펙트를 다른 트랙으로 옮깁니다.

        에러:
            TimelineError: 대상 트랙이 존재하지 않을 때
        """
        self._check_track(track)
        effect = self.get_effect(effect_id)
        if isinstance(effect, TextEffect):
            self._effects[effect_id] = dataclasses.replace(effect, track=track)
        else:
            effect.track = track
        self._notify("effect_track_changed", {"id": effect_id, "track": track})

    def set_text_property(self, effect_id: str, name: str, value: Any) -> None:
        """
        텍스트 이펙트의 단일 속성을 변경합니다.

        지원 속성:
        - "text"
        - TextStyle 필드 (font_size, font_family, align, fill, stroke, ...)
        - drop_shadow, drop_shadow_color, drop_shadow_alpha, drop_shadow_angle,
          drop_shadow_blur, drop_shadow_distance
        - "rect" (Placement 전체) 또는 Placement 필드 (x, y, width, ...)

        에러:
            KeyError: 이펙트가 없을 때
            TimelineError: 텍스트 이펙트가 아니거나 알 수 없는 속성일 때
        """
        effect = self.get_effect(effect_id)
        if not isinstance(effect, TextEffect):
            raise TimelineError(f"텍스트 이펙트가 아닙니다: {effect_id} ({effect.kind})")

        if name == "text":
            updated = dataclasses.replace(effect, text=str(value))
        elif name in _TEXT_STYLE_FIELDS:
            style = dataclasses.replace(effect.style, **{name: normalize_property_value(name, value)})
            updated = dataclasses.replace(effect, style=style)
        elif name in SHADOW_PROPERTIES:
            shadow = dataclasses.replace(effect.shadow, **{SHADOW_PROPERTIES[name]: value})
            updated = dataclasses.replace(effect, shadow=shadow)
        elif name == "rect":
            if not isinstance(value, Placement):
                raise TimelineError(f"rect 값은 Placement여야 합니다: {type(value).__name__}")
            updated = dataclasses.replace(effect, rect=value)
        elif name in _PLACEMENT_FIELDS:
            rect = dataclasses.replace(effect.rect, **{name: value})
            updated = dataclasses.replace(effect, rect=rect)
        else:
            raise TimelineError(f"알 수 없는 텍스트 속성: '{name}'")

        self._effects[effect_id] = updated
        self._notify("text_property_changed", {"id": effect_id, "name": name})

    def compose_at(self, timecode: float) -> None:
        """지정 타임코드의 재렌더를 요청합니다."""
        self._render_requests.append(timecode)
        self._notify("compose_requested", {"timecode": timecode})

    # =========================================================================
    # 직렬화
    # =========================================================================

    def to_dict(self) -> dict:
        return {
            "version": DOCUMENT_VERSION,
            "tracks": [dataclasses.asdict(track) for track in self._tracks],
            "effects": [dataclasses.asdict(effect) for effect in self._effects.values()],
            "selected_effect": self._selected_id,
            "timecode": self._timecode,
            "media": dict(self._media),
        }

    @classmethod
    def from_dict(cls, data: dict) -> "TimelineDocument":
        """
        to_dict() 형식의 딕셔너리에서 문서를 복원합니다.

        에러:
            TimelineError: 이펙트가 존재하지 않는 트랙을 참조할 때
        """
        document = cls(
            tracks=[TimelineTrack(**track) for track in data.get("tracks", [])],
            media=data.get("media", {}),
        )
        for record in data.get("effects", []):
            document.add_effect(_effect_from_record(record))
        if data.get("selected_effect"):
            document.select(data["selected_effect"])
        document.set_timecode(data.get("timecode", 0))
        return document

    @classmethod
    def load(cls, path: str | Path) -> "TimelineDocument":
        """JSON 프로젝트 파일을 읽습니다. 파일이 없으면 빈 문서를 반환합니다."""
        path = Path(path)
        if not path.exists():
            logger.info(f"프로젝트 파일 없음, 빈 타임라인으로 시작: {path}")
            return cls()
        data = json.loads(path.read_text(encoding="utf-8"))
        document = cls.from_dict(data)
        logger.info(
            f"프로젝트 로드: {path} (트랙 {document.track_count}개, 이펙트 {len(document.effects)}개)"
        )
        return document

    def save(self, path: str | Path) -> None:
        path = Path(path)
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(json.dumps(self.to_dict(), ensure_ascii=False, indent=2), encoding="utf-8")
        logger.info(f"프로젝트 저장: {path}")

    # =========================================================================
    # 내부 메서드
    # =========================================================================

    def _check_track(self, track: int) -> None:
        if not 0 <= track < len(self._tracks):
            raise TimelineError(
                f"존재하지 않는 트랙: {track} (트랙 수 {len(self._tracks)})"
            )

    def _notify(self, event: str, payload: dict) -> None:
        for callback in self._subscribers:
            try:
                callback(event, payload)
            except Exception as callback_error:
                logger.error(f"문서 변경 구독자 에러 ({event}): {callback_error}", exc_info=True)


def _effect_from_record(record: dict) -> AnyEffect:
    if record.get("kind") != TEXT_KIND:
        return TimelineItem(**record)

    style = dict(record["style"])
    style["fill"] = tuple(style.get("fill", ()))
    style["fill_gradient_stops"] = tuple(style.get("fill_gradient_stops", ()))
    return TextEffect(
        id=record["id"],
        track=record["track"],
        start_ms=record["start_ms"],
        duration_ms=record["duration_ms"],
        text=record["text"],
        style=TextStyle(**style),
        shadow=DropShadow(**record["shadow"]),
        rect=Placement(**record["rect"]),
    )
