"""
자막 파일 내보내기 모듈입니다.

역할:
- 한 트랙의 텍스트 이펙트를 SRT 포맷 파일로 저장
- 한 트랙의 텍스트 이펙트를 WebVTT 포맷 파일로 저장

이펙트는 시작 시각 순서로 기록하며, 타임코드는 타임라인 절대 위치입니다.

사용 예시:
    >>> exporter = SubtitleExporter()
    >>> effects = document.text_effects_on_track(1)
    >>> exporter.export_srt(effects, "output/subtitles/project.srt")
    >>> exporter.export_vtt(effects, "output/subtitles/project.vtt")
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Iterable

from omnisub.subtitle import TEXT_KIND, TextEffect
from omnisub.subtitle.timestamp import format_timestamp

logger = logging.getLogger(__name__)

SUPPORTED_FORMATS = ("srt", "vtt")


class SubtitleExporter:
    """
    텍스트 이펙트를 SRT/VTT 파일로 내보내는 클래스입니다.

    파일 저장 실패 시 OSError를 상위로 전파합니다.
    """

    def export_srt(self, effects: Iterable[TextEffect], filepath: str | Path) -> int:
        """
        텍스트 이펙트를 SRT 포맷으로 저장합니다.

        SRT 포맷:
            번호
            시작시간 --> 종료시간
            자막텍스트
            (빈 줄)

        파라미터:
            effects: 저장할 이펙트 목록 (텍스트가 아닌 이펙트는 제외)
            filepath: 저장할 .srt 파일 경로

        반환값:
            int: 기록한 자막 수
        """
        return self._write(effects, filepath, separator=",", header="", numbered=True)

    def export_vtt(self, effects: Iterable[TextEffect], filepath: str | Path) -> int:
        """
        텍스트 이펙트를 WebVTT 포맷으로 저장합니다.

        WebVTT 포맷:
            WEBVTT
            (빈 줄)
            시작시간 --> 종료시간
            자막텍스트
            (빈 줄)
        """
        return self._write(effects, filepath, separator=".", header="WEBVTT\n\n", numbered=False)

    def export(self, effects: Iterable[TextEffect], filepath: str | Path, fmt: str) -> int:
        """
        포맷 이름으로 내보냅니다.

        에러:
            ValueError: 지원하지 않는 포맷
        """
        fmt = fmt.lower().lstrip(".")
        if fmt == "srt":
            return self.export_srt(effects, filepath)
        if fmt == "vtt":
            return self.export_vtt(effects, filepath)
        raise ValueError(f"지원하지 않는 자막 포맷: '{fmt}' (지원: {SUPPORTED_FORMATS})")

    def _write(
        self,
        effects: Iterable[TextEffect],
        filepath: str | Path,
        separator: str,
        header: str,
        numbered: bool,
    ) -> int:
        filepath = Path(filepath)
        filepath.parent.mkdir(parents=True, exist_ok=True)

        cues = sorted(
            (e for e in effects if e.kind == TEXT_KIND),
            key=lambda e: (e.start_ms, e.end_ms),
        )

        try:
            with open(filepath, "w", encoding="utf-8") as f:
                f.write(header)
                for index, effect in enumerate(cues, start=1):
                    start_str = format_timestamp(effect.start_ms, separator)
                    end_str = format_timestamp(effect.end_ms, separator)

                    if numbered:
                        f.write(f"{index}\n")
                    f.write(f"{start_str} --> {end_str}\n")
                    f.write(f"{effect.text}\n")
                    f.write("\n")

            logger.info(f"자막 파일 저장 완료: {filepath} ({len(cues)}개 자막)")

        except OSError as exc:
            logger.error(f"자막 파일 저장 실패: {filepath}, 오류: {exc}")
            raise

        return len(cues)
