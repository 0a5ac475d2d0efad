"""
SRT 자막 파싱 모듈입니다.

역할:
- SRT 원문 텍스트를 시간 순서대로 Span 목록으로 변환
- 블록 단위 상태 머신: 빈 줄 건너뛰기 → 번호 줄 건너뛰기 → 타이밍 줄 파싱 → 본문 누적
- 타이밍 줄이 형식에 맞지 않는 블록은 버리고 다음 블록으로 진행 (전체 파싱은 중단하지 않음)

사용 예시:
    >>> spans = parse_srt("1\\n00:00:01,000 --> 00:00:02,500\\nHello\\n\\n")
    >>> spans[0]
    Span(text='Hello', start_ms=1000, end_ms=2500, style_overrides=None)
"""

from __future__ import annotations

import logging
import re
from pathlib import Path

from omnisub.subtitle import Span
from omnisub.subtitle.timestamp import SRT_TIMESTAMP_PATTERN, parse_timestamp

logger = logging.getLogger(__name__)

_TIMING_RE = re.compile(
    rf"(?P<start>{SRT_TIMESTAMP_PATTERN}) --> (?P<end>{SRT_TIMESTAMP_PATTERN})"
)


def parse_srt(raw_text: str) -> list[Span]:
    """
    SRT 텍스트를 Span 목록으로 파싱합니다.

    같은 텍스트를 다시 파싱하면 항상 같은 결과를 반환하며,
    빈 입력이나 완전히 잘못된 입력은 빈 목록을 반환합니다. 예외를 던지지 않습니다.

    파라미터:
        raw_text: SRT 파일 원문 (UTF-8 디코딩 완료)

    반환값:
        list[Span]: 파일 등장 순서대로 정렬된 구간 목록
    """
    lines = raw_text.lstrip("\ufeff").replace("\r\n", "\n").replace("\r", "\n").split("\n")
    spans: list[Span] = []
    skipped_blocks = 0
    i = 0

    while i < len(lines):
        # 1단계: 빈 줄 건너뛰기
        while i < len(lines) and lines[i].strip() == "":
            i += 1
        if i >= len(lines):
            break

        # 2단계: 번호 줄 건너뛰기
        i += 1
        if i >= len(lines):
            break

        # 3단계: 타이밍 줄 파싱
        timing_line = lines[i]
        i += 1

        match = _TIMING_RE.search(timing_line)
        if not match:
            skipped_blocks += 1
            logger.debug(f"타이밍 줄 형식 불일치, 블록 건너뜀: {timing_line!r}")
            continue

        start_ms = parse_timestamp(match.group("start"))
        end_ms = parse_timestamp(match.group("end"))

        # 4단계: 빈 줄 또는 입력 끝까지 본문 누적
        text_lines: list[str] = []
        while i < len(lines) and lines[i].strip() != "":
            text_lines.append(lines[i])
            i += 1

        spans.append(Span(text="\n".join(text_lines), start_ms=start_ms, end_ms=end_ms))

    if skipped_blocks:
        logger.warning(f"SRT 파싱: 형식 오류 블록 {skipped_blocks}개 건너뜀")
    logger.info(f"SRT 파싱 완료: {len(spans)}개 구간")
    return spans


def parse_srt_file(path: str | Path) -> list[Span]:
    """SRT 파일을 UTF-8로 읽어 parse_srt()로 파싱합니다."""
    content = Path(path).read_text(encoding="utf-8", errors="replace")
    return parse_srt(content)
