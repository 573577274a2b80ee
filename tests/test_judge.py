"""Tests for the judge client."""

from __future__ import annotations

from unittest.mock import AsyncMock, MagicMock, patch

import httpx
import pytest

from agentassay.config import Settings
from agentassay.judge import JudgeClient, JudgeError


def _settings(**kw):
    defaults = dict(judge_base_url="http://judge/v1/", judge_api_key="test-key",
                    judge_model="judge-model", judge_timeout=9.0)
    defaults.update(kw)
    return Settings(**defaults)


def _mock_client(mock_client_cls, resp=None, side_effect=None):
    mock_client = AsyncMock()
    if side_effect is not None:
        mock_client.post.side_effect = side_effect
    else:
        mock_client.post.return_value = resp
    mock_client.__aenter__ = AsyncMock(return_value=mock_client)
    mock_client.__aexit__ = AsyncMock(return_value=False)
    mock_client_cls.return_value = mock_client
    return mock_client


def _resp(payload):
    resp = MagicMock()
    resp.json.return_value = payload
    resp.raise_for_status = MagicMock()
    return resp


@pytest.mark.asyncio
async def test_invoke_returns_content():
    resp = _resp({"choices": [{"message": {"content": "85"}}]})
    with patch("agentassay.judge.httpx.AsyncClient") as mock_client_cls:
        client = _mock_client(mock_client_cls, resp)
        judge = JudgeClient(_settings())
        text = await judge.invoke([{"role": "user", "content": "score"}])

    assert text == "85"
    args, kwargs = client.post.call_args
    assert args[0] == "http://judge/v1/chat/completions"
    assert kwargs["json"]["model"] == "judge-model"
    assert kwargs["json"]["temperature"] == 0
    assert "response_format" not in kwargs["json"]
    assert kwargs["headers"]["Authorization"] == "Bearer test-key"
    assert kwargs["timeout"] == 9.0


@pytest.mark.asyncio
async def test_invoke_passes_response_format():
    resp = _resp({"choices": [{"message": {"content": "{}"}}]})
    fmt = {"type": "json_schema", "json_schema": {"name": "x", "schema": {}}}
    with patch("agentassay.judge.httpx.AsyncClient") as mock_client_cls:
        client = _mock_client(mock_client_cls, resp)
        await JudgeClient(_settings()).invoke([], response_format=fmt)
    assert client.post.call_args.kwargs["json"]["response_format"] == fmt


@pytest.mark.asyncio
async def test_missing_api_key():
    with pytest.raises(JudgeError, match="API key"):
        await JudgeClient(_settings(judge_api_key="")).invoke([])


@pytest.mark.asyncio
async def test_transport_error():
    with patch("agentassay.judge.httpx.AsyncClient") as mock_client_cls:
        _mock_client(mock_client_cls, side_effect=httpx.ConnectError("refused"))
        with pytest.raises(JudgeError, match="request failed"):
            await JudgeClient(_settings()).invoke([])


@pytest.mark.asyncio
async def test_malformed_payload():
    with patch("agentassay.judge.httpx.AsyncClient") as mock_client_cls:
        _mock_client(mock_client_cls, _resp({"choices": []}))
        with pytest.raises(JudgeError, match="Malformed"):
            await JudgeClient(_settings()).invoke([])


@pytest.mark.asyncio
async def test_non_text_content():
    with patch("agentassay.judge.httpx.AsyncClient") as mock_client_cls:
        _mock_client(mock_client_cls, _resp({"choices": [{"message": {"content": None}}]}))
        with pytest.raises(JudgeError, match="non-text"):
            await JudgeClient(_settings()).invoke([])
