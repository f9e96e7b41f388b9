from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Callable, Iterable, Mapping

from .request_builder import (
    ANALYSIS_PROMPT,
    build_chat_completion_body,
    build_chat_probe_body,
    build_generate_content_body,
    build_generate_content_probe_body,
)
from .response_normalizer import extract_chat_completion_text, extract_generate_content_text
from .settings import Settings

PERPLEXITY_KEY_PREFIX = "pplx-"
PERPLEXITY_KEY_PLACEHOLDER = "pplx-xxxxxxxxxxxxxxxxxxxxxxxxxxxxxxxxxxxxxxxx"
GEMINI_KEY_PREFIX = "AIza"
MIN_KEY_LENGTH = 20

PERPLEXITY_ENDPOINT = "https://api.perplexity.ai/chat/completions"
GEMINI_ENDPOINT_TEMPLATE = "https://generativelanguage.googleapis.com/v1beta/models/{model}:generateContent"


class ProviderNotFoundError(LookupError):
    pass


class ProviderNotConfiguredError(RuntimeError):
    pass


class ProviderKind(str, Enum):
    GEMINI = "gemini"
    PERPLEXITY = "perplexity"


@dataclass(frozen=True)
class ProviderRequest:
    url: str
    headers: dict[str, str]
    body: dict[str, Any]
    params: dict[str, str] = field(default_factory=dict)


@dataclass(frozen=True)
class ProviderDescriptor:
    """Static wire description of one provider.

    Behavior that differs between providers is carried as plain functions so
    the registry stays a flat lookup table.
    """

    kind: ProviderKind
    label: str
    api_key_env: str
    endpoint_template: str
    default_model: str
    key_validator: Callable[[str | None], bool]
    build_body: Callable[[str, str, str], dict[str, Any]]
    build_probe_body: Callable[[str], dict[str, Any]]
    authorize: Callable[[str], tuple[dict[str, str], dict[str, str]]]
    extract_text: Callable[[Any], str]

    @property
    def id(self) -> str:
        return self.kind.value

    def endpoint(self, model: str) -> str:
        return self.endpoint_template.format(model=model)


def is_valid_perplexity_key(api_key: str | None) -> bool:
    return bool(
        api_key
        and api_key != PERPLEXITY_KEY_PLACEHOLDER
        and api_key.startswith(PERPLEXITY_KEY_PREFIX)
        and len(api_key) > MIN_KEY_LENGTH
    )


def is_valid_gemini_key(api_key: str | None) -> bool:
    return bool(api_key and api_key.startswith(GEMINI_KEY_PREFIX) and len(api_key) > MIN_KEY_LENGTH)


def _bearer_auth(api_key: str) -> tuple[dict[str, str], dict[str, str]]:
    return {"Authorization": f"Bearer {api_key}"}, {}


def _query_key_auth(api_key: str) -> tuple[dict[str, str], dict[str, str]]:
    return {}, {"key": api_key}


PERPLEXITY_DESCRIPTOR = ProviderDescriptor(
    kind=ProviderKind.PERPLEXITY,
    label="Perplexity",
    api_key_env="PERPLEXITY_API_KEY",
    endpoint_template=PERPLEXITY_ENDPOINT,
    default_model="llama-3.1-sonar-large-128k-online",
    key_validator=is_valid_perplexity_key,
    build_body=lambda prompt, image_data, model: build_chat_completion_body(
        prompt=prompt,
        image_data=image_data,
        model=model,
    ),
    build_probe_body=lambda model: build_chat_probe_body(model=model),
    authorize=_bearer_auth,
    extract_text=extract_chat_completion_text,
)

GEMINI_DESCRIPTOR = ProviderDescriptor(
    kind=ProviderKind.GEMINI,
    label="Gemini",
    api_key_env="GEMINI_API_KEY",
    endpoint_template=GEMINI_ENDPOINT_TEMPLATE,
    default_model="gemini-1.5-flash",
    key_validator=is_valid_gemini_key,
    build_body=lambda prompt, image_data, model: build_generate_content_body(
        prompt=prompt,
        image_data=image_data,
    ),
    build_probe_body=lambda model: build_generate_content_probe_body(),
    authorize=_query_key_auth,
    extract_text=extract_generate_content_text,
)


class ProviderRegistry:
    def __init__(
        self,
        *,
        descriptors: Iterable[ProviderDescriptor],
        api_keys: Mapping[str, str | None] | None = None,
        models: Mapping[str, str | None] | None = None,
    ) -> None:
        self._descriptors: dict[str, ProviderDescriptor] = {}
        for descriptor in descriptors:
            if descriptor.id in self._descriptors:
                raise ValueError(f"Duplicate provider descriptor: {descriptor.id}")
            self._descriptors[descriptor.id] = descriptor
        self._api_keys = dict(api_keys or {})
        self._models = dict(models or {})

    def ids(self) -> list[str]:
        return list(self._descriptors)

    def lookup(self, provider_id: str) -> ProviderDescriptor:
        key = _normalize_provider_id(provider_id)
        descriptor = self._descriptors.get(key)
        if descriptor is None:
            supported = ", ".join(self._descriptors)
            raise ProviderNotFoundError(f"Unsupported provider '{provider_id}'. Expected one of: {supported}")
        return descriptor

    def model(self, provider_id: str) -> str:
        descriptor = self.lookup(provider_id)
        return self._models.get(descriptor.id) or descriptor.default_model

    def is_configured(self, provider_id: str) -> bool:
        try:
            descriptor = self.lookup(provider_id)
        except ProviderNotFoundError:
            return False
        return descriptor.key_validator(self._api_keys.get(descriptor.id))

    def build_request(self, provider_id: str, image_data: str, *, prompt: str = ANALYSIS_PROMPT) -> ProviderRequest:
        descriptor = self.lookup(provider_id)
        model = self.model(descriptor.id)
        headers, params = descriptor.authorize(self._require_key(descriptor))
        return ProviderRequest(
            url=descriptor.endpoint(model),
            headers=headers,
            body=descriptor.build_body(prompt, image_data, model),
            params=params,
        )

    def build_probe_request(self, provider_id: str) -> ProviderRequest:
        descriptor = self.lookup(provider_id)
        model = self.model(descriptor.id)
        headers, params = descriptor.authorize(self._require_key(descriptor))
        return ProviderRequest(
            url=descriptor.endpoint(model),
            headers=headers,
            body=descriptor.build_probe_body(model),
            params=params,
        )

    def availability(self) -> list[dict[str, Any]]:
        return [
            {
                "id": descriptor.id,
                "label": descriptor.label,
                "configured": self.is_configured(descriptor.id),
                "model": self.model(descriptor.id),
            }
            for descriptor in self._descriptors.values()
        ]

    def _require_key(self, descriptor: ProviderDescriptor) -> str:
        api_key = self._api_keys.get(descriptor.id)
        if not descriptor.key_validator(api_key):
            raise ProviderNotConfiguredError(
                f"{descriptor.label} API key not configured. "
                f"Please set a valid {descriptor.api_key_env} in environment variables."
            )
        return api_key


def build_default_registry(settings: Settings) -> ProviderRegistry:
    descriptors = (GEMINI_DESCRIPTOR, PERPLEXITY_DESCRIPTOR)
    return ProviderRegistry(
        descriptors=descriptors,
        api_keys={descriptor.id: settings.api_key_for(descriptor.id) for descriptor in descriptors},
        models={descriptor.id: settings.model_for(descriptor.id) for descriptor in descriptors},
    )


def _normalize_provider_id(provider_id: Any) -> str:
    if isinstance(provider_id, ProviderKind):
        return provider_id.value
    if not isinstance(provider_id, str):
        return ""
    return provider_id.strip().lower()
