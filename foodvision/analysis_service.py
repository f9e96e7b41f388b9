from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Callable

from .analysis_models import AnalysisResult, FallbackReason
from .mock_analysis import MockAnalysisProvider
from .provider_registry import (
    ProviderKind,
    ProviderNotConfiguredError,
    ProviderRegistry,
    ProviderRequest,
    build_default_registry,
)
from .provider_transport import (
    HttpResponse,
    VisionProviderError,
    extract_error_detail,
    post_json,
    read_json_reply,
)
from .response_normalizer import parse_provider_reply
from .settings import DEFAULT_TIMEOUT_SECONDS, Settings

logger = logging.getLogger(__name__)

PostJson = Callable[..., HttpResponse]


@dataclass
class AnalysisOutcome:
    result: AnalysisResult | None = None
    fallback_reason: FallbackReason | None = None
    error: str | None = None


class FoodAnalysisService:
    def __init__(
        self,
        *,
        registry: ProviderRegistry,
        mock_provider: MockAnalysisProvider | None = None,
        timeout_seconds: float = DEFAULT_TIMEOUT_SECONDS,
        default_provider: str = ProviderKind.GEMINI.value,
        post: PostJson = post_json,
    ) -> None:
        self.registry = registry
        self.mock_provider = mock_provider or MockAnalysisProvider()
        self.timeout_seconds = timeout_seconds
        self.default_provider = default_provider
        self._post = post

    @classmethod
    def from_settings(cls, settings: Settings) -> "FoodAnalysisService":
        return cls(
            registry=build_default_registry(settings),
            mock_provider=MockAnalysisProvider(food_probability=settings.mock_food_probability),
            timeout_seconds=settings.request_timeout_seconds,
            default_provider=settings.default_provider,
        )

    def list_providers(self) -> dict[str, Any]:
        return {
            "providers": self.registry.availability(),
            "default_provider": self.default_provider,
        }

    def analyze(self, provider_id: str, image_data: str) -> AnalysisResult:
        """Analyze one image; provider or configuration failures yield mock data."""
        outcome = self._attempt(provider_id, image_data)
        if outcome.result is not None:
            return outcome.result

        logger.warning(
            "Using mock data for provider '%s' (%s)%s",
            provider_id,
            outcome.fallback_reason.value if outcome.fallback_reason else "unknown",
            f": {outcome.error}" if outcome.error else "",
        )
        return self.mock_provider.generate(
            provider=provider_id,
            fallback_reason=outcome.fallback_reason,
        )

    def check_connectivity(self, provider_id: str) -> dict[str, Any]:
        descriptor = self.registry.lookup(provider_id)
        if not self.registry.is_configured(descriptor.id):
            raise ProviderNotConfiguredError(
                f"Please set a valid {descriptor.label} API key in environment variables"
            )

        response = self._send(self.registry.build_probe_request(descriptor.id))
        if not response.ok and descriptor.kind is ProviderKind.PERPLEXITY and "Invalid model" in response.text:
            return {
                "success": False,
                "message": "API key is valid but model is not available",
                "details": (
                    f"The configured {descriptor.label} model is not currently available. "
                    "Please check the documentation for the correct model name."
                ),
            }
        if not response.ok:
            raise VisionProviderError(
                f"API test failed: {response.status_code} - {extract_error_detail(response)}"
            )
        return {
            "success": True,
            "message": f"{descriptor.label} API key is valid and working",
        }

    def _attempt(self, provider_id: str, image_data: str) -> AnalysisOutcome:
        if not self.registry.is_configured(provider_id):
            return AnalysisOutcome(fallback_reason=FallbackReason.UNCONFIGURED)

        descriptor = self.registry.lookup(provider_id)
        try:
            response = self._send(self.registry.build_request(descriptor.id, image_data))
            raw_reply = read_json_reply(response, label=descriptor.label)
            result = parse_provider_reply(descriptor, raw_reply)
        except VisionProviderError as exc:
            return AnalysisOutcome(fallback_reason=FallbackReason.PROVIDER_ERROR, error=str(exc))
        except Exception as exc:
            logger.exception("Unexpected failure while calling %s", descriptor.label)
            return AnalysisOutcome(
                fallback_reason=FallbackReason.PROVIDER_ERROR,
                error=f"{exc.__class__.__name__}: {exc}",
            )

        result.provider = descriptor.id
        return AnalysisOutcome(result=result)

    def _send(self, request: ProviderRequest) -> HttpResponse:
        return self._post(
            url=request.url,
            headers=request.headers,
            request_payload=request.body,
            timeout_seconds=self.timeout_seconds,
            params=request.params,
        )
