"""Shared fixtures for interpolant tests."""

from __future__ import annotations

import pytest

from interpolant import EngineConfig, InterpolationEngine, PartialCollection, define_partial


@pytest.fixture
def collection() -> PartialCollection:
    """Collection with a schema-validated footer and a plain greeting."""
    partials = PartialCollection()
    partials.register(
        define_partial(
            "footer",
            "echo footer: ${text}",
            {"text": {"type": "string"}},
        )
    )
    partials.register(define_partial("greet", "hi ${name}"))
    return partials


@pytest.fixture
def engine(collection: PartialCollection) -> InterpolationEngine:
    return InterpolationEngine(partials=collection, config=EngineConfig())


@pytest.fixture(autouse=True)
def _clean_env(monkeypatch: pytest.MonkeyPatch) -> None:
    for name in EngineConfig.model_fields:
        monkeypatch.delenv(f"INTERPOLANT_{name.upper()}", raising=False)
    monkeypatch.delenv("INTERPOLANT_DEBUG", raising=False)
