"""
음성 매칭 워크플로우 모듈입니다.

역할:
- 선택 클립 → 미디어 파일 조회 → 오디오 추출 → 매칭 서비스 → 자막 임포트
- 단계마다 진행 상황 콜백 통보 (1 추출, 2 전송, 3 처리, 4 추가)
- 외부 연동 실패는 실패 MatchOutcome으로 보고하며 이펙트를 등록하지 않음

오디오 추출과 HTTP 요청만 비동기로 기다리고, 트랙 배치와 합성은
이벤트 루프 스레드에서 동기로 실행합니다.

사용 예시:
    >>> workflow = MatchWorkflow(config, document, manager)
    >>> outcome = asyncio.run(workflow.run(MatchRequest(start_surah=1, end_surah=1)))
"""

from __future__ import annotations

import asyncio
import logging
import tempfile
from pathlib import Path
from typing import Any, Callable, Optional

from omnisub.config.schema import AppConfig
from omnisub.matching import (
    STAGE_EXTRACT,
    STAGE_IMPORT,
    STAGE_LABELS,
    STAGE_PROCESS,
    STAGE_SEND,
    TOTAL_STAGES,
    MatchingError,
    MatchOutcome,
    MatchProgress,
    MatchRequest,
    MediaNotFoundError,
)
from omnisub.matching.audio_extractor import extract_audio, output_suffix
from omnisub.matching.match_client import MatchClient
from omnisub.subtitle.subtitle_manager import SubtitleManager

logger = logging.getLogger(__name__)

ProgressCallback = Callable[[MatchProgress], None]

_MEDIA_KINDS = ("video", "audio")


class MatchWorkflow:
    """
    선택된 클립의 오디오를 매칭하여 자막을 추가하는 비동기 워크플로우입니다.
    """

    def __init__(
        self,
        config: AppConfig,
        host: Any,
        manager: SubtitleManager,
        client: Optional[MatchClient] = None,
    ) -> None:
        self._config = config
        self._host = host
        self._manager = manager
        self._client = client or MatchClient(config.matching)

    async def run(
        self,
        request: MatchRequest,
        policy: Optional[str] = None,
        position: Optional[str] = None,
        on_progress: Optional[ProgressCallback] = None,
    ) -> MatchOutcome:
        """
        워크플로우 전체를 실행합니다.

        파라미터:
            request: 매칭 범위
            policy: 배치 정책 이름 (None이면 설정 기본값)
            position: 자막 명명 위치 (None이면 matched 프리셋 값)
            on_progress: 단계 통보 콜백

        반환값:
            MatchOutcome: 실패해도 예외 대신 ok=False 결과
        """
        try:
            clip = self._selected_clip()
            media_path = self._host.get_file(clip.file_hash) if clip.file_hash else None
            if media_path is None:
                raise MediaNotFoundError(f"선택 클립의 미디어 파일을 찾을 수 없습니다: {clip.id}")

            # 외부 호출 전에 정책 이름을 검증
            hint = self._manager.hint_for_selection(policy)

            with tempfile.TemporaryDirectory(prefix="omnisub-") as workdir:
                audio_path = Path(workdir) / f"audio{output_suffix(self._config.matching.audio_codec)}"

                self._report(on_progress, STAGE_EXTRACT)
                await extract_audio(media_path, audio_path, self._config.matching)

                self._report(on_progress, STAGE_SEND)
                matches = await asyncio.to_thread(self._client.submit, audio_path, request)

            self._report(on_progress, STAGE_PROCESS)
            if not matches:
                logger.info("매칭 결과 없음")
                return MatchOutcome(ok=True, message="일치하는 구간이 없습니다.")

            self._report(on_progress, STAGE_IMPORT)
            result = self._manager.import_from_matches(matches, hint=hint, position=position)

        except MatchingError as exc:
            logger.error(f"매칭 워크플로우 실패: {exc}")
            return MatchOutcome(ok=False, message=str(exc), error=exc)
        except (ValueError, TypeError) as exc:
            logger.error(f"매칭 워크플로우 입력 오류: {exc}")
            return MatchOutcome(ok=False, message=str(exc), error=exc)

        logger.info(
            f"매칭 워크플로우 완료: matches={len(matches)}, "
            f"added={len(result.effects)}, track={result.track}"
        )
        return MatchOutcome(
            ok=result.track is not None,
            message=result.message,
            match_count=len(matches),
            result=result,
            matches=list(matches),
        )

    def _selected_clip(self) -> Any:
        clip = self._host.selected_effect
        if clip is None or clip.kind not in _MEDIA_KINDS:
            raise MediaNotFoundError("비디오 또는 오디오 클립을 먼저 선택하세요.")
        return clip

    @staticmethod
    def _report(callback: Optional[ProgressCallback], stage: int) -> None:
        progress = MatchProgress(stage=stage, total=TOTAL_STAGES, label=STAGE_LABELS[stage])
        logger.info(f"매칭 진행 [{stage}/{TOTAL_STAGES}] {progress.label}")
        if callback is not None:
            callback(progress)
