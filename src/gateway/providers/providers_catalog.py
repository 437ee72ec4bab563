"""Static provider catalog loaded once at process start."""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass, field
from enum import StrEnum
from pathlib import Path
from types import MappingProxyType
from typing import Any, Dict, Literal, Mapping, Sequence

from pydantic import BaseModel, ConfigDict, Field, ValidationError, model_validator

from ..generation.generation_errors import ConfigurationError, UnknownProviderError

logger = logging.getLogger(__name__)

PROMPT_PLACEHOLDER = "{prompt}"


class CandidateKind(StrEnum):
    """How a candidate is reached on the inference backend."""

    RUN = "run"
    VERSION = "version"
    DEPLOYMENT = "deployment"


@dataclass(frozen=True, slots=True)
class ModelCandidate:
    """Single backend target with its fixed parameter template."""

    kind: CandidateKind
    ref: str
    params: Mapping[str, Any] = field(default_factory=dict)

    @property
    def label(self) -> str:
        return f"{self.kind.value}:{self.ref}"


@dataclass(frozen=True, slots=True)
class ProviderConfig:
    """Named provider entry with candidates tried in declared order."""

    key: str
    candidates: Sequence[ModelCandidate]
    prompt_template: str | None = None
    prompt_field: str = "prompt"
    negative_prompt_field: str | None = None

    def render_prompt(self, prompt: str) -> str:
        if not self.prompt_template:
            return prompt
        return self.prompt_template.replace(PROMPT_PLACEHOLDER, prompt)


@dataclass(frozen=True, slots=True)
class ProviderCatalog:
    providers: Mapping[str, ProviderConfig]
    default_key: str

    def resolve(self, key: str | None, *, strict: bool = True) -> ProviderConfig:
        """Return the provider for ``key``; blank keys select the default."""

        if not key:
            return self.providers[self.default_key]
        config = self.providers.get(key)
        if config is not None:
            return config
        if strict:
            raise UnknownProviderError(key)
        logger.info(
            "providers.catalog.fallback_default",
            extra={"requested": key, "default": self.default_key},
        )
        return self.providers[self.default_key]

    def describe(self) -> list[dict[str, Any]]:
        return [
            {
                "key": config.key,
                "default": config.key == self.default_key,
                "candidates": [candidate.label for candidate in config.candidates],
            }
            for config in self.providers.values()
        ]


class _CandidateSchema(BaseModel):
    model_config = ConfigDict(extra="forbid")

    kind: Literal["run", "version", "deployment"]
    ref: str = Field(min_length=1)
    params: Dict[str, Any] = Field(default_factory=dict)

    @model_validator(mode="after")
    def _check_ref(self) -> "_CandidateSchema":
        if self.kind == "deployment":
            owner, _, name = self.ref.partition("/")
            if not owner or not name or "/" in name:
                raise ValueError(f"deployment ref must look like 'owner/name', got '{self.ref}'")
        return self


class _ProviderSchema(BaseModel):
    model_config = ConfigDict(extra="forbid")

    candidates: list[_CandidateSchema] = Field(min_length=1)
    prompt_template: str | None = None
    prompt_field: str = Field(default="prompt", min_length=1)
    negative_prompt_field: str | None = None


class _CatalogSchema(BaseModel):
    model_config = ConfigDict(extra="forbid")

    default: str
    providers: Dict[str, _ProviderSchema] = Field(min_length=1)

    @model_validator(mode="after")
    def _check_default(self) -> "_CatalogSchema":
        if self.default not in self.providers:
            raise ValueError(f"default provider '{self.default}' is not defined")
        return self


BUILTIN_CATALOG: dict[str, Any] = {
    "default": "flux",
    "providers": {
        "flux": {
            "candidates": [
                {
                    "kind": "run",
                    "ref": "stability-ai/sdxl-turbo:1773ff4189b0c6b892c638faa559a2ce3d10923d58aa63e31178b6113ecabd44",
                    "params": {"num_inference_steps": 4, "guidance_scale": 0.0},
                },
                {
                    "kind": "run",
                    "ref": "stability-ai/stable-diffusion:27b93a2413e7f36cd83da926f365ad97b2276af3d58ac4368e3a35a4e88e1f6f",
                    "params": {"width": 768, "height": 768},
                },
            ],
        },
        "jaime": {
            "prompt_template": "A photorealistic image of a handsome man with dark hair: {prompt}",
            "candidates": [
                {
                    "kind": "run",
                    "ref": "stability-ai/sdxl:c221b2b8ef527988fb59bf24a8b97c4561f1c671f73bd389f866bfb27c061316",
                    "params": {
                        "width": 768,
                        "height": 768,
                        "num_outputs": 1,
                        "scheduler": "K_EULER",
                        "num_inference_steps": 30,
                        "guidance_scale": 7.5,
                        "refine": "expert_ensemble_refiner",
                        "high_noise_frac": 0.8,
                    },
                },
            ],
        },
        "cristina": {
            "prompt_template": "A photorealistic image of a stunning woman with brown hair: {prompt}",
            "prompt_field": "text",
            "candidates": [
                {"kind": "deployment", "ref": "jrogbaaa/cristina-generator"},
                {
                    "kind": "version",
                    "ref": "jrogbaaa/cristina:132c98d22d2171c64e55fe7eb539fbeef0085cb0bd5cac3e8d005234b53ef1cb",
                },
            ],
        },
    },
}


def _ordered_candidates(entries: list[_CandidateSchema]) -> tuple[ModelCandidate, ...]:
    # A named deployment is always attempted before versioned models.
    candidates = [
        ModelCandidate(
            kind=CandidateKind(entry.kind),
            ref=entry.ref,
            params=MappingProxyType(dict(entry.params)),
        )
        for entry in entries
    ]
    deployments = [c for c in candidates if c.kind is CandidateKind.DEPLOYMENT]
    others = [c for c in candidates if c.kind is not CandidateKind.DEPLOYMENT]
    return tuple(deployments + others)


def build_catalog(raw: Mapping[str, Any], *, default_provider: str | None = None) -> ProviderCatalog:
    """Validate a raw catalog mapping and build immutable provider entries."""

    data = dict(raw)
    if default_provider:
        data["default"] = default_provider
    try:
        schema = _CatalogSchema.model_validate(data)
    except ValidationError as exc:
        raise ConfigurationError(f"Invalid provider catalog: {exc}") from exc

    providers = {
        key: ProviderConfig(
            key=key,
            candidates=_ordered_candidates(entry.candidates),
            prompt_template=entry.prompt_template,
            prompt_field=entry.prompt_field,
            negative_prompt_field=entry.negative_prompt_field,
        )
        for key, entry in schema.providers.items()
    }
    return ProviderCatalog(providers=MappingProxyType(providers), default_key=schema.default)


def load_provider_catalog(
    path: Path | None = None,
    *,
    default_provider: str | None = None,
) -> ProviderCatalog:
    """Load the catalog from ``path`` or fall back to the built-in entries."""

    if path is None:
        raw: Mapping[str, Any] = BUILTIN_CATALOG
    else:
        try:
            raw = json.loads(path.read_text(encoding="utf-8"))
        except FileNotFoundError as exc:
            raise ConfigurationError(f"Provider catalog '{path}' not found") from exc
        except json.JSONDecodeError as exc:
            raise ConfigurationError(f"Provider catalog '{path}' is not valid JSON: {exc}") from exc
        if not isinstance(raw, dict):
            raise ConfigurationError(f"Provider catalog '{path}' must contain a JSON object")

    catalog = build_catalog(raw, default_provider=default_provider)
    logger.info(
        "providers.catalog.loaded",
        extra={"providers": sorted(catalog.providers), "default": catalog.default_key},
    )
    return catalog


__all__ = [
    "BUILTIN_CATALOG",
    "CandidateKind",
    "ModelCandidate",
    "ProviderCatalog",
    "ProviderConfig",
    "build_catalog",
    "load_provider_catalog",
]
