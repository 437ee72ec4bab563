from __future__ import annotations

import json
from pathlib import Path

import pytest

from src.gateway.generation.generation_errors import ConfigurationError, UnknownProviderError
from src.gateway.providers.providers_catalog import (
    BUILTIN_CATALOG,
    CandidateKind,
    build_catalog,
    load_provider_catalog,
)

pytestmark = pytest.mark.unit


def test_builtin_catalog_matches_known_providers() -> None:
    catalog = load_provider_catalog()

    assert catalog.default_key == "flux"
    assert set(catalog.providers) == {"flux", "jaime", "cristina"}
    cristina = catalog.providers["cristina"]
    assert cristina.prompt_field == "text"
    assert [c.kind for c in cristina.candidates] == [CandidateKind.DEPLOYMENT, CandidateKind.VERSION]
    assert catalog.providers["flux"].render_prompt("a cat") == "a cat"
    assert catalog.providers["jaime"].render_prompt("on a boat").endswith(": on a boat")


def test_deployments_are_tried_first_regardless_of_order() -> None:
    catalog = build_catalog(
        {
            "default": "p",
            "providers": {
                "p": {
                    "candidates": [
                        {"kind": "version", "ref": "owner/model:abc"},
                        {"kind": "deployment", "ref": "owner/deploy"},
                    ]
                }
            },
        }
    )

    assert [c.label for c in catalog.providers["p"].candidates] == [
        "deployment:owner/deploy",
        "version:owner/model:abc",
    ]


def test_resolve_defaults_and_unknown_keys() -> None:
    catalog = build_catalog(BUILTIN_CATALOG)

    assert catalog.resolve(None).key == "flux"
    assert catalog.resolve("").key == "flux"
    assert catalog.resolve("jaime").key == "jaime"
    with pytest.raises(UnknownProviderError) as excinfo:
        catalog.resolve("picasso")
    assert excinfo.value.provider_key == "picasso"
    assert catalog.resolve("picasso", strict=False).key == "flux"


def test_default_provider_override() -> None:
    catalog = build_catalog(BUILTIN_CATALOG, default_provider="jaime")

    assert catalog.resolve(None).key == "jaime"


@pytest.mark.parametrize(
    "raw",
    [
        {"default": "missing", "providers": {"p": {"candidates": [{"kind": "run", "ref": "a/b:1"}]}}},
        {"default": "p", "providers": {"p": {"candidates": []}}},
        {"default": "p", "providers": {"p": {"candidates": [{"kind": "stream", "ref": "a/b"}]}}},
        {"default": "p", "providers": {"p": {"candidates": [{"kind": "deployment", "ref": "no-owner"}]}}},
        {"default": "p", "providers": {}},
    ],
)
def test_invalid_catalogs_are_rejected(raw: dict) -> None:
    with pytest.raises(ConfigurationError):
        build_catalog(raw)


def test_load_from_file(tmp_path: Path) -> None:
    path = tmp_path / "providers.json"
    path.write_text(
        json.dumps(
            {
                "default": "sketch",
                "providers": {
                    "sketch": {
                        "prompt_template": "pencil sketch of {prompt}",
                        "negative_prompt_field": "negative_prompt",
                        "candidates": [{"kind": "run", "ref": "owner/sketch:1", "params": {"steps": 10}}],
                    }
                },
            }
        ),
        encoding="utf-8",
    )

    catalog = load_provider_catalog(path)

    sketch = catalog.providers["sketch"]
    assert sketch.negative_prompt_field == "negative_prompt"
    assert dict(sketch.candidates[0].params) == {"steps": 10}
    assert catalog.describe() == [
        {"key": "sketch", "default": True, "candidates": ["run:owner/sketch:1"]}
    ]


def test_missing_or_malformed_file(tmp_path: Path) -> None:
    with pytest.raises(ConfigurationError, match="not found"):
        load_provider_catalog(tmp_path / "absent.json")

    broken = tmp_path / "broken.json"
    broken.write_text("{not json", encoding="utf-8")
    with pytest.raises(ConfigurationError, match="not valid JSON"):
        load_provider_catalog(broken)

    listing = tmp_path / "list.json"
    listing.write_text("[]", encoding="utf-8")
    with pytest.raises(ConfigurationError, match="JSON object"):
        load_provider_catalog(listing)
