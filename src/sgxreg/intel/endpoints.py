"""Endpoint plan for the two Intel-facing operations.

Platform registration always goes directly to Intel. PCK retrieval tries each
configured PCCS first, in order, then Intel as the final fallback.
"""
from __future__ import annotations

from dataclasses import dataclass
from typing import Tuple

from ..constants import PCCS_PCK_RETRIEVAL_PATH


@dataclass(frozen=True)
class EndpointPlan:
    registration_url: str
    pck_retrieval_urls: Tuple[str, ...]

    def endpoint_type(self, index: int) -> str:
        return "pccs" if index < len(self.pck_retrieval_urls) - 1 else "intel"


def resolve_endpoints(cfg) -> EndpointPlan:
    retrieval = [base_url + PCCS_PCK_RETRIEVAL_PATH for base_url in cfg.pccs_urls]
    retrieval.append(cfg.intel_pck_retrieval_url)
    return EndpointPlan(
        registration_url=cfg.intel_registration_url,
        pck_retrieval_urls=tuple(retrieval),
    )
