# packshift/resolve/selection.py
from __future__ import annotations
from typing import Iterable

from packshift.resolve.types import Artifact, VersionCandidate

__all__ = ["candidateSortKey", "rankCandidates", "selectBestCandidate", "pickPrimaryArtifact"]



def candidateSortKey(candidate: VersionCandidate) -> tuple:
    return (candidate.stabilityTier, candidate.publishedAt)



def rankCandidates(candidates: Iterable[VersionCandidate]) -> list[VersionCandidate]:
    """
    Order candidates best first: stability tier, then publish time, both
    descending. sorted() is stable with reverse=True, so full ties keep the
    provider's listing order.
    """
    # NOTE: the provider does not promise a stable listing order, so a full
    # tie can flip between runs.
    return sorted(candidates, key=candidateSortKey, reverse=True)



def selectBestCandidate(candidates: Iterable[VersionCandidate]) -> VersionCandidate | None:
    ranked = rankCandidates(candidates)
    return ranked[0] if ranked else None



def pickPrimaryArtifact(candidate: VersionCandidate | None) -> Artifact | None:
    if candidate is None:
        return None
    return candidate.primaryArtifact
