"""App configuration (the ``endpoints`` section) + JSON file loader."""

import json
import os
from dataclasses import dataclass, field, fields

from chat_gateway.config.settings import get_settings
from chat_gateway.endpoints.types import normalize_endpoint_name


def _known(cls, data: dict) -> dict:
    """Drop keys the dataclass doesn't model (display labels, icons, ...)."""
    names = {f.name for f in fields(cls)}
    return {k: v for k, v in data.items() if k in names}


@dataclass
class EndpointSettings:
    streamRate: int | None = None
    titleModel: str | None = None
    titleConvo: bool = False
    titleMethod: str | None = None


@dataclass
class AzureModelMapping:
    group: str
    deploymentName: str | None = None
    version: str | None = None


@dataclass
class AzureGroup:
    apiKey: str = ""
    instanceName: str = ""
    deploymentName: str = ""
    version: str = ""
    baseURL: str = ""
    serverless: bool = False
    headers: dict[str, str] = field(default_factory=dict)
    addParams: dict = field(default_factory=dict)
    dropParams: list[str] = field(default_factory=list)
    forcePrompt: bool = False


@dataclass
class AzureConfig:
    modelGroupMap: dict[str, AzureModelMapping] = field(default_factory=dict)
    groupMap: dict[str, AzureGroup] = field(default_factory=dict)
    streamRate: int | None = None
    titleConvo: bool = False
    titleModel: str | None = None
    titleMethod: str | None = None
    plugins: bool = False
    assistants: bool = False
    assistantModels: list[str] = field(default_factory=list)

    @property
    def modelNames(self) -> list[str]:
        return list(self.modelGroupMap)

    @classmethod
    def from_dict(cls, data: dict) -> "AzureConfig":
        """Accepts either a ``groups`` list or prebuilt ``modelGroupMap``/``groupMap``."""
        data = dict(data)
        model_group_map = {
            name: AzureModelMapping(**_known(AzureModelMapping, mapping))
            for name, mapping in data.pop("modelGroupMap", {}).items()
        }
        group_map = {
            name: AzureGroup(**_known(AzureGroup, group))
            for name, group in data.pop("groupMap", {}).items()
        }

        for raw in data.pop("groups", []):
            raw = dict(raw)
            name = raw.pop("group")
            models = raw.pop("models", {})
            if name in group_map:
                raise ValueError(f"Duplicate Azure group: {name}")
            group_map[name] = AzureGroup(**_known(AzureGroup, raw))
            for model_name, model in models.items():
                if model_name in model_group_map:
                    raise ValueError(f"Azure model {model_name} is mapped by more than one group")
                # `true` means "deploy under the group's defaults"
                overrides = model if isinstance(model, dict) else {}
                model_group_map[model_name] = AzureModelMapping(
                    group=name,
                    deploymentName=overrides.get("deploymentName"),
                    version=overrides.get("version"),
                )

        return cls(modelGroupMap=model_group_map, groupMap=group_map, **_known(cls, data))


@dataclass
class CustomModels:
    default: list[str] = field(default_factory=list)
    fetch: bool = False
    userIdQuery: bool = False


@dataclass
class CustomEndpoint:
    name: str
    apiKey: str = ""
    baseURL: str = ""
    models: CustomModels = field(default_factory=CustomModels)
    headers: dict[str, str] = field(default_factory=dict)
    titleModel: str | None = None
    streamRate: int | None = None

    @classmethod
    def from_dict(cls, data: dict) -> "CustomEndpoint":
        data = dict(data)
        models = CustomModels(**_known(CustomModels, data.pop("models", {})))
        return cls(models=models, **_known(cls, data))


@dataclass
class AppConfig:
    all: EndpointSettings | None = None
    openAI: EndpointSettings | None = None
    anthropic: EndpointSettings | None = None
    google: EndpointSettings | None = None
    azureOpenAI: AzureConfig | None = None
    custom: list[CustomEndpoint] = field(default_factory=list)

    @classmethod
    def from_dict(cls, data: dict) -> "AppConfig":
        endpoints = data.get("endpoints", {})
        simple = {
            key: EndpointSettings(**_known(EndpointSettings, endpoints[key]))
            for key in ("all", "openAI", "anthropic", "google")
            if key in endpoints
        }
        azure = endpoints.get("azureOpenAI")
        return cls(
            azureOpenAI=AzureConfig.from_dict(azure) if azure else None,
            custom=[CustomEndpoint.from_dict(e) for e in endpoints.get("custom", [])],
            **simple,
        )

    def endpoint_settings(self, name: str) -> EndpointSettings | None:
        return {"openAI": self.openAI, "anthropic": self.anthropic, "google": self.google}.get(name)

    def find_custom(self, name: str) -> CustomEndpoint | None:
        for endpoint in self.custom:
            if normalize_endpoint_name(endpoint.name) == name:
                return endpoint
        return None


class JSONAppConfigStore:
    """File-backed app config. Reloads on mtime change."""

    def __init__(self, path: str):
        self._path = path
        self._config = AppConfig()
        self._last_mtime: float = 0.0
        self._load()

    def _load(self) -> None:
        try:
            mtime = os.path.getmtime(self._path)
        except OSError:
            self._config = AppConfig()
            return

        if mtime == self._last_mtime:
            return

        with open(self._path, encoding="utf-8") as f:
            data = json.load(f)

        self._config = AppConfig.from_dict(data)
        self._last_mtime = mtime

    def get(self) -> AppConfig:
        self._load()  # reload if file changed
        return self._config


_store: JSONAppConfigStore | None = None


def get_app_config() -> AppConfig:
    """FastAPI dependency returning the current app config."""
    global _store
    if _store is None:
        _store = JSONAppConfigStore(get_settings().app_config_path)
    return _store.get()
