"""
매칭 서비스 HTTP 클라이언트 모듈입니다.

역할:
- 오디오 파일과 범위 파라미터를 {endpoint}/process 로 multipart 전송
- 응답 봉투 {count, matches} 검증
- 에러 봉투 {error}, HTTP 오류, 연결 실패를 MatchServiceError로 변환

동기 클라이언트이며, 워크플로우는 asyncio.to_thread()로 호출합니다.
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Any

import requests

from omnisub.config.schema import MatchingConfig
from omnisub.matching import MatchRequest, MatchServiceError

logger = logging.getLogger(__name__)

PROCESS_PATH = "/process"


class MatchClient:
    """
    외부 음성 매칭 서비스 클라이언트입니다.

    사용 예시:
        >>> client = MatchClient(config.matching)
        >>> matches = client.submit(Path("clip.mp3"), MatchRequest(1, 1))
    """

    def __init__(self, config: MatchingConfig, session: requests.Session | None = None) -> None:
        self._config = config
        self._session = session or requests.Session()

    @property
    def process_url(self) -> str:
        return f"{self._config.endpoint}{PROCESS_PATH}"

    def submit(self, audio_path: str | Path, request: MatchRequest) -> list[dict[str, Any]]:
        """
        오디오 파일을 전송하고 매칭 레코드 목록을 반환합니다.

        파라미터:
            audio_path: 추출된 오디오 파일
            request: 범위 파라미터

        반환값:
            list[dict]: {start, end, original_text, ...} 레코드 목록

        에러:
            MatchServiceError: 연결 실패, 타임아웃, HTTP 오류, 에러 봉투, 잘못된 응답 형식
        """
        audio_path = Path(audio_path)
        logger.info(
            f"매칭 서비스 요청: {self.process_url} "
            f"(file={audio_path.name}, fields={request.form_fields()})"
        )

        try:
            with open(audio_path, "rb") as audio_file:
                response = self._session.post(
                    self.process_url,
                    files={"audio": (audio_path.name, audio_file)},
                    data=request.form_fields(),
                    timeout=self._config.timeout_sec,
                )
        except requests.exceptions.ConnectionError as exc:
            raise MatchServiceError(f"매칭 서비스에 연결할 수 없습니다: {self._config.endpoint}") from exc
        except requests.exceptions.Timeout as exc:
            raise MatchServiceError(
                f"매칭 서비스 응답 시간 초과 ({self._config.timeout_sec}s)"
            ) from exc
        except requests.exceptions.RequestException as exc:
            raise MatchServiceError(f"매칭 서비스 요청 실패: {exc}") from exc

        payload = self._decode(response)

        if not response.ok:
            message = payload.get("error") if isinstance(payload, dict) else None
            raise MatchServiceError(
                f"매칭 서비스 오류: HTTP {response.status_code} {message or response.text}",
                status_code=response.status_code,
            )

        if not isinstance(payload, dict):
            raise MatchServiceError("매칭 서비스 응답 형식 오류 (객체 아님)", status_code=response.status_code)
        if payload.get("error"):
            raise MatchServiceError(f"매칭 서비스 오류: {payload['error']}", status_code=response.status_code)

        matches = payload.get("matches")
        if not isinstance(matches, list):
            raise MatchServiceError("매칭 서비스 응답에 matches 목록이 없습니다", status_code=response.status_code)

        count = payload.get("count", len(matches))
        if count != len(matches):
            logger.warning(f"매칭 응답 count 불일치: count={count}, matches={len(matches)}")

        logger.info(f"매칭 서비스 응답: {len(matches)}개 구간")
        return matches

    @staticmethod
    def _decode(response: requests.Response) -> Any:
        try:
            return response.json()
        except ValueError:
            if response.ok:
                raise MatchServiceError(
                    "매칭 서비스 응답이 JSON이 아닙니다", status_code=response.status_code
                ) from None
            return None
