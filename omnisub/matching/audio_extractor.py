"""
ffmpeg 오디오 추출 모듈입니다.

역할:
- 클립 미디어 파일에서 비디오 스트림을 제외하고 오디오만 추출
- asyncio 서브프로세스로 실행하여 이벤트 루프를 막지 않음

코덱/비트레이트/채널 수는 MatchingConfig에서 읽습니다 (기본 mp3 192k 스테레오).
"""

from __future__ import annotations

import asyncio
import logging
from pathlib import Path

from omnisub.config.schema import MatchingConfig
from omnisub.matching import AudioExtractionError

logger = logging.getLogger(__name__)

# 코덱 이름 → 출력 파일 확장자
_CODEC_SUFFIXES = {
    "mp3": ".mp3",
    "libmp3lame": ".mp3",
    "pcm_s16le": ".wav",
    "aac": ".m4a",
    "flac": ".flac",
}


def build_command(source: Path, target: Path, config: MatchingConfig) -> list[str]:
    return [
        config.ffmpeg_path, "-y",
        "-i", str(source),
        "-vn",                               # 비디오 스트림 제외
        "-acodec", config.audio_codec,
        "-ac", str(config.audio_channels),
        "-ab", config.audio_bitrate,
        str(target),
    ]


def output_suffix(codec: str) -> str:
    return _CODEC_SUFFIXES.get(codec, f".{codec}")


async def extract_audio(source: str | Path, target: str | Path, config: MatchingConfig) -> Path:
    """
    ffmpeg로 미디어 파일의 오디오를 추출합니다.

    파라미터:
        source: 원본 미디어 파일 경로
        target: 저장할 오디오 파일 경로
        config: 매칭 설정 (ffmpeg 경로, 코덱, 비트레이트, 채널)

    반환값:
        추출된 오디오 파일 경로

    에러:
        AudioExtractionError: 원본이 없거나, ffmpeg 실행 불가 또는 0이 아닌 종료 코드
    """
    source = Path(source)
    target = Path(target)
    if not source.exists():
        raise AudioExtractionError(f"미디어 파일을 찾을 수 없습니다: {source}")

    cmd = build_command(source, target, config)
    logger.info(f"ffmpeg 오디오 추출 시작: {source} → {target}")

    try:
        process = await asyncio.create_subprocess_exec(
            *cmd,
            stdout=asyncio.subprocess.DEVNULL,
            stderr=asyncio.subprocess.PIPE,
        )
    except OSError as exc:
        raise AudioExtractionError(f"ffmpeg 실행 실패 ({config.ffmpeg_path}): {exc}") from exc

    _, stderr = await process.communicate()
    if process.returncode != 0:
        err = stderr.decode(errors="replace") if stderr else ""
        raise AudioExtractionError(
            f"ffmpeg 오디오 추출 실패 (returncode={process.returncode}): {err}"
        )

    logger.info(f"ffmpeg 오디오 추출 완료: {target}")
    return target
