"""Tests for chat_gateway/resolution/options.py — the client options merge."""

import json

import pytest

from chat_gateway.config.app_config import AzureGroup, AzureModelMapping, EndpointSettings
from chat_gateway.endpoints.types import Endpoint, EndpointRef
from chat_gateway.resolution.azure import map_model_to_azure_config
from chat_gateway.resolution.options import OptionsInputs, build_client_options, effective_model

OPENAI = EndpointRef(kind=Endpoint.OPENAI, name="openAI")
AZURE = EndpointRef(kind=Endpoint.AZURE_OPENAI, name="azureOpenAI")


def _group(model: str = "gpt-4-turbo", **group):
    return map_model_to_azure_config(
        model, {model: AzureModelMapping(group="g1")}, {"g1": AzureGroup(**group)}
    )


class TestBuildClientOptions:

    def test_defaults_without_model(self, user):
        options = build_client_options(OptionsInputs(ref=OPENAI, user=user, api_key="sk"))
        assert options.model == "gpt-4o-mini"
        assert options.model_options["user"] == "user-123"
        assert options.streaming is True

    def test_precedence(self, user):
        options = build_client_options(OptionsInputs(
            ref=OPENAI,
            user=user,
            api_key="sk",
            model="gpt-4o",
            model_parameters={"temperature": 0.2, "model": "gpt-4.1"},
            override_model="o3-mini",
        ))
        assert options.model == "o3-mini"
        assert options.model_options["temperature"] == 0.2

    def test_user_cannot_be_spoofed(self, user):
        options = build_client_options(OptionsInputs(
            ref=OPENAI, user=user, api_key="sk", model_parameters={"user": "someone-else"}
        ))
        assert options.model_options["user"] == "user-123"

    def test_streaming_flag(self, user):
        options = build_client_options(OptionsInputs(
            ref=OPENAI, user=user, api_key="sk", model_parameters={"stream": False}
        ))
        assert options.streaming is False

    def test_endpoint_settings(self, user):
        options = build_client_options(OptionsInputs(
            ref=OPENAI,
            user=user,
            api_key="sk",
            base_url="https://proxy/v1",
            endpoint_settings=EndpointSettings(streamRate=12, titleModel="gpt-4o-mini", titleConvo=True),
            proxy="http://corp-proxy:3128",
            debug=True,
            context_strategy="summarize",
        ))
        assert options.reverse_proxy_url == "https://proxy/v1"
        assert options.stream_rate == 12
        assert options.title_model == "gpt-4o-mini"
        assert options.title_convo is True
        assert options.proxy == "http://corp-proxy:3128"
        assert options.debug is True
        assert options.context_strategy == "summarize"

    def test_all_stream_rate_overrides(self, user):
        options = build_client_options(OptionsInputs(
            ref=OPENAI,
            user=user,
            api_key="sk",
            endpoint_settings=EndpointSettings(streamRate=12),
            all_settings=EndpointSettings(streamRate=40),
        ))
        assert options.stream_rate == 40

    def test_headers_resolved(self, user, monkeypatch):
        monkeypatch.setenv("TEAM_TOKEN", "t-1")
        options = build_client_options(OptionsInputs(
            ref=OPENAI,
            user=user,
            api_key="sk",
            headers={"X-Token": "${TEAM_TOKEN}", "X-Email": "{{LIBRECHAT_USER_EMAIL}}"},
        ))
        assert options.headers == {"X-Token": "t-1", "X-Email": "ada@example.com"}

    def test_inputs_not_mutated(self, user):
        params = {"temperature": 0.5}
        inputs = OptionsInputs(ref=OPENAI, user=user, api_key="sk", model_parameters=params)
        build_client_options(inputs)
        assert params == {"temperature": 0.5}


class TestAzureGroupOptions:

    def test_add_params_merged(self, user):
        group = _group(baseURL="https://x", addParams={"api_version": "2024-01"})
        options = build_client_options(OptionsInputs(
            ref=AZURE, user=user, api_key="az", model="gpt-4-turbo", azure_group=group
        ))
        assert options.reverse_proxy_url == "https://x"
        assert options.model_options["api_version"] == "2024-01"
        assert options.add_params == {"api_version": "2024-01"}

    def test_request_params_beat_add_params(self, user):
        group = _group(baseURL="https://x", addParams={"temperature": 1.0})
        options = build_client_options(OptionsInputs(
            ref=AZURE,
            user=user,
            api_key="az",
            model="gpt-4-turbo",
            model_parameters={"temperature": 0.1},
            azure_group=group,
        ))
        assert options.model_options["temperature"] == 0.1

    def test_drop_params(self, user):
        group = _group(baseURL="https://x", dropParams=["stop", "model", "user"])
        options = build_client_options(OptionsInputs(
            ref=AZURE,
            user=user,
            api_key="az",
            model="gpt-4-turbo",
            model_parameters={"stop": ["\n"]},
            azure_group=group,
        ))
        assert "stop" not in options.model_options
        assert options.model == "gpt-4-turbo"
        assert options.model_options["user"] == "user-123"

    @pytest.mark.parametrize("model,rate", [("gpt-4-turbo", 30), ("gpt-35-turbo", 17)])
    def test_stream_rate_by_model(self, user, model, rate):
        group = _group(model, instanceName="inst")
        options = build_client_options(OptionsInputs(
            ref=AZURE, user=user, api_key="az", model=model, azure_group=group,
            azure_settings=EndpointSettings(titleConvo=True),
        ))
        assert options.stream_rate == rate
        assert options.title_method == "completion"
        assert options.title_convo is True
        assert options.azure["azureOpenAIApiInstanceName"] == "inst"

    def test_serverless(self, user):
        group = _group("mistral-large", baseURL="https://m.inference.ai.azure.com/v1",
                       serverless=True, version="2024-05-01-preview")
        options = build_client_options(OptionsInputs(
            ref=AZURE, user=user, api_key="az-key", model="mistral-large", azure_group=group
        ))
        assert options.serverless is True
        assert options.azure is None
        assert options.default_query == {"api-version": "2024-05-01-preview"}
        assert options.headers["api-key"] == "az-key"


class TestToDict:

    def test_camel_case(self, user):
        options = build_client_options(OptionsInputs(
            ref=OPENAI, user=user, api_key="sk", base_url="https://x"
        ))
        data = options.to_dict()
        assert data["reverseProxyUrl"] == "https://x"
        assert data["modelOptions"]["model"] == "gpt-4o-mini"
        assert data["dropParams"] == []


class TestDeterminism:

    def _serialized_twice(self, inputs: OptionsInputs) -> tuple[str, str]:
        first = build_client_options(inputs)
        second = build_client_options(inputs)
        return json.dumps(first.to_dict(), sort_keys=False), json.dumps(second.to_dict(), sort_keys=False)

    def test_plain_endpoint(self, user):
        inputs = OptionsInputs(
            ref=OPENAI,
            user=user,
            api_key="sk",
            base_url="https://proxy/v1",
            model="gpt-4o",
            model_parameters={"temperature": 0.2, "top_p": 0.9, "stop": ["\n"]},
            headers={"X-User": "{{LIBRECHAT_USER_ID}}"},
            endpoint_settings=EndpointSettings(streamRate=12, titleConvo=True),
        )
        first, second = self._serialized_twice(inputs)
        assert first == second

    def test_azure_group(self, user):
        group = _group(
            baseURL="https://x",
            addParams={"api_version": "2024-01", "seed": 1},
            dropParams=["stop"],
            headers={"X-Group": "g1"},
        )
        inputs = OptionsInputs(
            ref=AZURE,
            user=user,
            api_key="az",
            model="gpt-4-turbo",
            model_parameters={"temperature": 0.1, "stop": ["END"]},
            azure_group=group,
            azure_settings=EndpointSettings(titleConvo=True),
        )
        first, second = self._serialized_twice(inputs)
        assert first == second
        assert json.loads(first)["reverseProxyUrl"] == "https://x"


class TestEffectiveModel:

    def test_override_first(self):
        assert effective_model("a", {"model": "b"}, "c") == "c"

    def test_parameters_then_model(self):
        assert effective_model("a", {"model": "b"}) == "b"
        assert effective_model("a", {}) == "a"
