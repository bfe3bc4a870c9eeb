from types import SimpleNamespace

import httpx
import openai
import pytest

from recapframe.errors import ConfigurationError, ServiceError
from recapframe.llm import LanguageModelClient, translate_error

_REQUEST = httpx.Request("POST", "https://api.openai.com/v1/chat/completions")


def _status_error(cls, status):
    return cls("boom", response=httpx.Response(status, request=_REQUEST), body=None)


def _completion(content=None, tool_arguments=None):
    tool_calls = None
    if tool_arguments is not None:
        tool_calls = [SimpleNamespace(function=SimpleNamespace(arguments=tool_arguments))]
    message = SimpleNamespace(content=content, tool_calls=tool_calls)
    return SimpleNamespace(choices=[SimpleNamespace(message=message)])


class FakeCompletions:
    def __init__(self, outcomes):
        self.outcomes = list(outcomes)
        self.calls = []

    def create(self, **kwargs):
        self.calls.append(kwargs)
        outcome = self.outcomes.pop(0)
        if isinstance(outcome, Exception):
            raise outcome
        return outcome


def _client(outcomes, max_attempts=3):
    completions = FakeCompletions(outcomes)
    fake = SimpleNamespace(chat=SimpleNamespace(completions=completions))
    return LanguageModelClient(client=fake, max_attempts=max_attempts), completions


def test_translate_error_kinds():
    assert isinstance(
        translate_error(_status_error(openai.AuthenticationError, 401)), ConfigurationError
    )

    quota = translate_error(_status_error(openai.RateLimitError, 429))
    assert isinstance(quota, ServiceError)
    assert quota.quota is True
    assert quota.status == 429

    server = translate_error(_status_error(openai.InternalServerError, 500))
    assert isinstance(server, ServiceError)
    assert server.status == 500
    assert server.quota is False

    network = translate_error(openai.APIConnectionError(request=_REQUEST))
    assert isinstance(network, ServiceError)


def test_chat_returns_content_and_requests_json():
    client, completions = _client([_completion('{"a": 1}')])
    content = client.chat([{"role": "user", "content": "hi"}], max_tokens=50, json_object=True)
    assert content == '{"a": 1}'
    assert completions.calls[0]["response_format"] == {"type": "json_object"}
    assert completions.calls[0]["max_tokens"] == 50


def test_chat_without_content_is_empty():
    client, _ = _client([_completion(None)])
    assert client.chat([]) == ""


def test_connection_errors_are_retried():
    client, completions = _client(
        [openai.APIConnectionError(request=_REQUEST), _completion("ok")]
    )
    assert client.chat([]) == "ok"
    assert len(completions.calls) == 2


def test_connection_errors_give_up_after_max_attempts():
    client, completions = _client(
        [openai.APIConnectionError(request=_REQUEST)] * 2, max_attempts=2
    )
    with pytest.raises(ServiceError):
        client.chat([])
    assert len(completions.calls) == 2


def test_rate_limit_is_not_retried():
    client, completions = _client([_status_error(openai.RateLimitError, 429)])
    with pytest.raises(ServiceError) as info:
        client.chat([])
    assert info.value.quota is True
    assert len(completions.calls) == 1


def test_call_function_returns_arguments():
    client, completions = _client([_completion(tool_arguments='{"questions": []}')])
    function = {"name": "createQuestions", "parameters": {"type": "object"}}
    assert client.call_function([], function) == '{"questions": []}'
    call = completions.calls[0]
    assert call["tools"] == [{"type": "function", "function": function}]
    assert call["tool_choice"]["function"]["name"] == "createQuestions"


def test_call_function_without_tool_call():
    client, _ = _client([_completion("text only")])
    assert client.call_function([], {"name": "createQuestions"}) == ""


def test_missing_key_is_configuration_error():
    with pytest.raises(ConfigurationError):
        LanguageModelClient(api_key=None)
