"""
MatchClient 단위 테스트 (requests.Session mock 사용)

검증 항목:
- {endpoint}/process 로 multipart 전송 (audio 파일 + 범위 필드)
- 선택 범위 필드(None)는 전송하지 않음
- 응답 봉투 {count, matches} 파싱
- 에러 봉투, HTTP 오류, 연결 실패, 타임아웃 → MatchServiceError
"""

from __future__ import annotations

from unittest.mock import MagicMock

import pytest
import requests

from omnisub.config.schema import MatchingConfig
from omnisub.matching import MatchRequest, MatchServiceError
from omnisub.matching.match_client import MatchClient


def _make_response(status_code: int = 200, payload=None, text: str = "") -> MagicMock:
    response = MagicMock(spec=requests.Response)
    response.status_code = status_code
    response.ok = status_code < 400
    response.text = text
    if isinstance(payload, Exception):
        response.json.side_effect = payload
    else:
        response.json.return_value = payload
    return response


def _make_client(response=None, side_effect=None) -> tuple[MatchClient, MagicMock]:
    session = MagicMock(spec=requests.Session)
    if side_effect is not None:
        session.post.side_effect = side_effect
    else:
        session.post.return_value = response
    config = MatchingConfig(endpoint="http://matcher:5000/", timeout_sec=30)
    return MatchClient(config, session=session), session


@pytest.fixture
def audio_file(tmp_path):
    path = tmp_path / "audio.mp3"
    path.write_bytes(b"ID3fake")
    return path


def test_submit_posts_multipart_and_returns_matches(audio_file):
    matches = [{"start": 0, "end": 1.5, "original_text": "نص"}]
    client, session = _make_client(_make_response(payload={"count": 1, "matches": matches}))

    result = client.submit(audio_file, MatchRequest(start_surah=1, end_surah=2, start_ayah=3))

    assert result == matches
    args, kwargs = session.post.call_args
    assert args[0] == "http://matcher:5000/process"
    assert kwargs["data"] == {"start_surah": "1", "end_surah": "2", "start_ayah": "3"}
    assert kwargs["files"]["audio"][0] == "audio.mp3"
    assert kwargs["timeout"] == 30


def test_error_envelope_raises(audio_file):
    client, _ = _make_client(_make_response(payload={"error": "no recitation detected"}))

    with pytest.raises(MatchServiceError, match="no recitation detected"):
        client.submit(audio_file, MatchRequest(1, 1))


def test_http_error_carries_status_code(audio_file):
    client, _ = _make_client(_make_response(500, payload={"error": "internal"}))

    with pytest.raises(MatchServiceError) as exc_info:
        client.submit(audio_file, MatchRequest(1, 1))

    assert exc_info.value.status_code == 500
    assert "internal" in str(exc_info.value)


def test_http_error_with_non_json_body(audio_file):
    client, _ = _make_client(_make_response(502, payload=ValueError("not json"), text="Bad Gateway"))

    with pytest.raises(MatchServiceError, match="Bad Gateway"):
        client.submit(audio_file, MatchRequest(1, 1))


def test_non_json_success_body_raises(audio_file):
    client, _ = _make_client(_make_response(200, payload=ValueError("not json")))

    with pytest.raises(MatchServiceError):
        client.submit(audio_file, MatchRequest(1, 1))


def test_missing_matches_list_raises(audio_file):
    client, _ = _make_client(_make_response(payload={"count": 0}))

    with pytest.raises(MatchServiceError):
        client.submit(audio_file, MatchRequest(1, 1))


@pytest.mark.parametrize(
    "exc",
    [requests.exceptions.ConnectionError("refused"), requests.exceptions.ReadTimeout("slow")],
)
def test_transport_failures_raise(audio_file, exc):
    client, _ = _make_client(side_effect=exc)

    with pytest.raises(MatchServiceError) as exc_info:
        client.submit(audio_file, MatchRequest(1, 1))

    assert exc_info.value.status_code is None


def test_count_mismatch_is_tolerated(audio_file):
    matches = [{"start": 0, "end": 1, "original_text": "a"}]
    client, _ = _make_client(_make_response(payload={"count": 5, "matches": matches}))

    assert client.submit(audio_file, MatchRequest(1, 1)) == matches
