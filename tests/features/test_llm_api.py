"""Tests for cognify.features.llm_api.

These tests patch the `openai` module to avoid network calls.
"""

from unittest.mock import MagicMock, patch

import openai
import pytest

from cognify.errors import ModelUnavailableError
from cognify.features import llm_api


@patch("cognify.features.llm_api.openai")
def test_call_llm_with_fake_openai(mock_openai):
    def create(model, input, temperature):
        assert "gpt" in model
        assert input[0] == {"role": "system", "content": "You are a tutor."}
        assert input[-1] == {"role": "user", "content": "hi"}
        res = MagicMock()
        res.output_text = "Hello back"
        return res

    mock_openai.OpenAI().responses.create.side_effect = create

    res = llm_api.call_llm(
        "hi",
        history=[{"role": "user", "content": "previous"}],
        sys_prompt="You are a tutor.",
    )
    assert res == "Hello back"


def test_call_llm_rejects_bad_history():
    with pytest.raises(AssertionError):
        llm_api.call_llm("hi", sys_prompt="x", history=[{"role": "tutor", "content": "?"}])


@patch("cognify.features.llm_api.openai.OpenAI")
def test_complete_passes_model_and_temperature(mock_client_class):
    mock_client_class.return_value.responses.create.return_value.output_text = "ok"

    assert llm_api.complete("prompt", model="gpt-test", temperature=0.3) == "ok"

    kwargs = mock_client_class.return_value.responses.create.call_args.kwargs
    assert kwargs["model"] == "gpt-test"
    assert kwargs["temperature"] == 0.3
    assert kwargs["input"][-1] == {"role": "user", "content": "prompt"}


@patch("cognify.features.llm_api.openai.OpenAI")
def test_complete_maps_sdk_errors(mock_client_class):
    mock_client_class.return_value.responses.create.side_effect = (
        openai.OpenAIError("connection refused")
    )

    with pytest.raises(ModelUnavailableError) as exc_info:
        llm_api.complete("prompt")
    assert exc_info.value.code == "model_unavailable"


@patch("cognify.features.llm_api.openai.OpenAI")
def test_complete_maps_missing_text(mock_client_class):
    mock_client_class.return_value.responses.create.return_value.output_text = None

    with pytest.raises(ModelUnavailableError):
        llm_api.complete("prompt")


@pytest.mark.slow
def test_complete_with_real_openai():
    res = llm_api.complete("Hi! What is the value of 2+2? Answer with a number.")
    assert "4" in res
