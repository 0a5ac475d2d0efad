"""
타임스탬프 파싱 모듈입니다.

역할:
- 초 단위 숫자 또는 SRT 형식(HH:MM:SS,mmm) 문자열을 밀리초로 변환
- 인식할 수 없는 값은 예외 대신 0을 반환 (외부 매칭 서비스 데이터는 신뢰하지 않음)
- 밀리초 → SRT/VTT 문자열 역변환 (내보내기용)

엄격한 검증이 필요한 호출자는 is_srt_timestamp()로 먼저 확인해야 합니다.
"""

from __future__ import annotations

import logging
import math
import re
from typing import Any

logger = logging.getLogger(__name__)

# HH:MM:SS,mmm (두 자리 시/분/초, 세 자리 밀리초)
SRT_TIMESTAMP_PATTERN = r"(\d{2}):(\d{2}):(\d{2}),(\d{3})"

_SRT_TIMESTAMP_RE = re.compile(SRT_TIMESTAMP_PATTERN)
_STRICT_SRT_TIMESTAMP_RE = re.compile(rf"^{SRT_TIMESTAMP_PATTERN}$")


def parse_timestamp(value: Any) -> float:
    """
    타임스탬프를 밀리초로 변환합니다.

    변환 규칙:
    - 유한한 숫자: 초 단위로 간주하여 × 1000 (절삭 없음)
    - HH:MM:SS,mmm 문자열: ((H*3600)+(M*60)+S)*1000+mmm
    - None, bool, 무한대/NaN, 인식 불가 문자열: 0

    파라미터:
        value: 초(숫자) 또는 SRT 형식 문자열

    반환값:
        밀리초. 숫자 입력은 소수부를 유지하고 문자열 입력은 정수
    """
    if value is None:
        return 0

    # bool은 int의 하위 타입이므로 숫자 처리 전에 제외
    if isinstance(value, bool):
        logger.debug(f"타임스탬프 형식 인식 불가 (bool): {value!r}")
        return 0

    if isinstance(value, (int, float)):
        if not math.isfinite(value):
            logger.debug(f"타임스탬프가 유한한 숫자가 아님: {value!r}")
            return 0
        return value * 1000

    match = _SRT_TIMESTAMP_RE.search(str(value))
    if not match:
        logger.debug(f"타임스탬프 형식 인식 불가: {value!r}")
        return 0

    return _components_to_ms(*match.groups())


def is_srt_timestamp(text: str) -> bool:
    """문자열 전체가 HH:MM:SS,mmm 형식이면 True를 반환합니다."""
    return bool(_STRICT_SRT_TIMESTAMP_RE.match(text))


def format_timestamp(ms: float, separator: str = ",") -> str:
    """
    밀리초를 HH:MM:SS,mmm 문자열로 변환합니다.

    파라미터:
        ms: 밀리초 (음수는 0으로 처리, 소수부는 반올림)
        separator: 초/밀리초 구분자 (SRT는 ",", VTT는 ".")
    """
    total_ms = max(0, int(round(ms)))
    hours, remainder = divmod(total_ms, 3_600_000)
    minutes, remainder = divmod(remainder, 60_000)
    seconds, millis = divmod(remainder, 1000)
    return f"{hours:02d}:{minutes:02d}:{seconds:02d}{separator}{millis:03d}"


def _components_to_ms(hours: str, minutes: str, seconds: str, millis: str) -> int:
    return ((int(hours) * 3600) + (int(minutes) * 60) + int(seconds)) * 1000 + int(millis)
