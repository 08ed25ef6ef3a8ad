"""Client options: the merged configuration handed to a provider client.

``build_client_options`` is a pure function of its inputs. Precedence, low
to high: compiled defaults, endpoint config, Azure group overrides, the
request's ``model_parameters``, then an explicit override model.
"""

from dataclasses import asdict, dataclass, field

from chat_gateway.config.app_config import EndpointSettings
from chat_gateway.endpoints.types import Endpoint, EndpointRef
from chat_gateway.resolution.azure import AzureGroupResolution, default_stream_rate
from chat_gateway.resolution.env import resolve_headers
from chat_gateway.resolution.request import AuthenticatedUser

DEFAULT_MODEL_OPTIONS: dict[Endpoint, dict] = {
    Endpoint.OPENAI: {"model": "gpt-4o-mini"},
    Endpoint.AZURE_OPENAI: {},
    Endpoint.ANTHROPIC: {"model": "claude-3-5-sonnet-latest"},
    Endpoint.GOOGLE: {"model": "gemini-1.5-flash"},
    Endpoint.BEDROCK: {},
    Endpoint.CUSTOM: {},
}

# Never removed by a group's dropParams
PROTECTED_PARAMS = frozenset({"model", "user"})


@dataclass(frozen=True)
class OptionsInputs:
    ref: EndpointRef
    user: AuthenticatedUser
    api_key: str
    base_url: str | None = None
    auth_header: str | None = None
    model: str = ""
    model_parameters: dict = field(default_factory=dict)
    override_model: str | None = None
    endpoint_settings: EndpointSettings | None = None
    all_settings: EndpointSettings | None = None
    headers: dict[str, str] = field(default_factory=dict)
    azure_group: AzureGroupResolution | None = None
    azure_settings: EndpointSettings | None = None
    azure_options: dict | None = None
    proxy: str | None = None
    debug: bool = False
    context_strategy: str | None = None


@dataclass(frozen=True)
class ClientOptions:
    endpoint: str
    api_key: str
    reverse_proxy_url: str | None
    headers: dict[str, str]
    model_options: dict
    streaming: bool = True
    proxy: str | None = None
    auth_header: str | None = None
    azure: dict | None = None
    serverless: bool = False
    default_query: dict | None = None
    stream_rate: int | None = None
    title_model: str | None = None
    title_convo: bool = False
    title_method: str | None = None
    add_params: dict | None = None
    drop_params: tuple[str, ...] = ()
    force_prompt: bool = False
    context_strategy: str | None = None
    debug: bool = False

    @property
    def model(self) -> str:
        return self.model_options.get("model", "")

    def to_dict(self) -> dict:
        """camelCase wire form, as the frontend and agent runner expect it."""
        data = asdict(self)
        data["drop_params"] = list(self.drop_params)
        return {_camel(k): v for k, v in data.items()}


def _camel(name: str) -> str:
    head, *rest = name.split("_")
    return head + "".join(part.title() for part in rest)


def effective_model(model: str, model_parameters: dict, override_model: str | None = None) -> str:
    return override_model or model_parameters.get("model") or model


def build_client_options(inputs: OptionsInputs) -> ClientOptions:
    group = inputs.azure_group

    model_options = dict(DEFAULT_MODEL_OPTIONS[inputs.ref.kind])
    if inputs.model:
        model_options["model"] = inputs.model
    if group is not None:
        model_options.update(group.add_params)
    model_options.update(inputs.model_parameters)
    if inputs.override_model:
        model_options["model"] = inputs.override_model

    drop_params = group.drop_params if group is not None else ()
    for param in drop_params:
        if param not in PROTECTED_PARAMS:
            model_options.pop(param, None)

    # Upstream attribution and per-user rate limiting
    model_options["user"] = inputs.user.id

    model_name = model_options.get("model", "")
    streaming = bool(inputs.model_parameters.get("streaming", inputs.model_parameters.get("stream", True)))

    headers = dict(group.headers) if group is not None else {}
    headers.update(inputs.headers)
    headers = resolve_headers(headers, inputs.user)

    settings = inputs.endpoint_settings
    stream_rate = settings.streamRate if settings else None
    title_model = settings.titleModel if settings else None
    title_convo = settings.titleConvo if settings else False
    title_method = settings.titleMethod if settings else None

    reverse_proxy_url = inputs.base_url
    azure = inputs.azure_options
    default_query = None
    serverless = False

    if group is not None:
        azure_settings = inputs.azure_settings or EndpointSettings()
        reverse_proxy_url = group.base_url or reverse_proxy_url
        stream_rate = default_stream_rate(model_name, azure_settings.streamRate)
        title_model = azure_settings.titleModel
        title_convo = azure_settings.titleConvo
        title_method = azure_settings.titleMethod or "completion"
        serverless = group.serverless
        azure = None if serverless else dict(group.azure_options)
        if serverless:
            version = group.azure_options.get("azureOpenAIApiVersion")
            default_query = {"api-version": version} if version else None
            headers["api-key"] = inputs.api_key

    if inputs.all_settings is not None and inputs.all_settings.streamRate is not None:
        stream_rate = inputs.all_settings.streamRate

    return ClientOptions(
        endpoint=inputs.ref.name,
        api_key=inputs.api_key,
        reverse_proxy_url=reverse_proxy_url or None,
        headers=headers,
        model_options=model_options,
        streaming=streaming,
        proxy=inputs.proxy or None,
        auth_header=inputs.auth_header,
        azure=azure,
        serverless=serverless,
        default_query=default_query,
        stream_rate=stream_rate,
        title_model=title_model,
        title_convo=title_convo,
        title_method=title_method,
        add_params=dict(group.add_params) if group is not None else None,
        drop_params=tuple(drop_params),
        force_prompt=group.force_prompt if group is not None else False,
        context_strategy=inputs.context_strategy,
        debug=inputs.debug,
    )
