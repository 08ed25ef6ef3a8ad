"""Azure OpenAI model routing across configured deployment groups."""

from dataclasses import dataclass, field

from chat_gateway.config.app_config import AzureGroup, AzureModelMapping
from chat_gateway.config.settings import Settings
from chat_gateway.errors import UnknownModelGroupError
from chat_gateway.resolution.env import extract_env_variable

GPT4_STREAM_RATE = 30
DEFAULT_STREAM_RATE = 17


@dataclass(frozen=True)
class AzureGroupResolution:
    group: str
    base_url: str | None
    headers: dict[str, str]
    azure_options: dict[str, str]
    serverless: bool = False
    add_params: dict = field(default_factory=dict)
    drop_params: tuple[str, ...] = ()
    force_prompt: bool = False


def default_stream_rate(model_name: str, configured: int | None = None) -> int:
    if configured is not None:
        return configured
    return GPT4_STREAM_RATE if "gpt-4" in model_name else DEFAULT_STREAM_RATE


def _construct_azure_url(base_url: str, instance_name: str, deployment_name: str) -> str:
    return (
        base_url
        .replace("${INSTANCE_NAME}", instance_name)
        .replace("${DEPLOYMENT_NAME}", deployment_name)
    )


def map_model_to_azure_config(
    model_name: str,
    model_group_map: dict[str, AzureModelMapping],
    group_map: dict[str, AzureGroup],
) -> AzureGroupResolution:
    """Resolve the deployment group serving ``model_name``.

    Raises UnknownModelGroupError rather than falling back to default
    credentials, which could send the request to the wrong deployment.
    """
    mapping = model_group_map.get(model_name)
    if mapping is None:
        raise UnknownModelGroupError(f'Model named "{model_name}" not found in configuration.')

    group = group_map.get(mapping.group)
    if group is None:
        raise UnknownModelGroupError(
            f'Group "{mapping.group}" for model "{model_name}" not found in configuration.'
        )

    instance_name = extract_env_variable(group.instanceName)
    if group.serverless and not group.baseURL:
        raise UnknownModelGroupError(f'Group "{mapping.group}" is serverless but has no baseURL.')
    if not group.serverless and not (instance_name or group.baseURL):
        raise UnknownModelGroupError(
            f'Group "{mapping.group}" is missing an instanceName for non-serverless configuration.'
        )

    deployment_name = mapping.deploymentName or group.deploymentName or model_name
    version = extract_env_variable(mapping.version or group.version)

    azure_options = {
        "azureOpenAIApiKey": extract_env_variable(group.apiKey),
        "azureOpenAIApiInstanceName": instance_name,
        "azureOpenAIApiDeploymentName": deployment_name,
        "azureOpenAIApiVersion": version,
    }

    base_url = None
    if group.baseURL:
        base_url = _construct_azure_url(extract_env_variable(group.baseURL), instance_name, deployment_name)

    return AzureGroupResolution(
        group=mapping.group,
        base_url=base_url,
        headers=dict(group.headers),
        azure_options=azure_options,
        serverless=group.serverless,
        add_params=dict(group.addParams),
        drop_params=tuple(group.dropParams),
        force_prompt=group.forcePrompt,
    )


def get_azure_credentials(settings: Settings) -> dict[str, str]:
    """Azure options from the environment, for deployments without groups."""
    return {
        "azureOpenAIApiKey": settings.azure_api_key,
        "azureOpenAIApiInstanceName": settings.azure_openai_api_instance_name,
        "azureOpenAIApiDeploymentName": settings.azure_openai_api_deployment_name,
        "azureOpenAIApiVersion": settings.azure_openai_api_version,
    }
