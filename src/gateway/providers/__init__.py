"""Provider catalog, inference client and adapter."""

from .providers_adapter import ProviderAdapter
from .providers_catalog import CandidateKind, ModelCandidate, ProviderCatalog, ProviderConfig
from .providers_client import InferenceClient, ReplicateClient

__all__ = [
    "CandidateKind",
    "InferenceClient",
    "ModelCandidate",
    "ProviderAdapter",
    "ProviderCatalog",
    "ProviderConfig",
    "ReplicateClient",
]
