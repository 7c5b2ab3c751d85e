"""
Denial Triage & Appeal Services.

- triage: load, filter, total and batch-triage denials
- denial_management: rule-based analysis and appeal workflows
"""

from src.services.denials.models import (
    AppealWorkflow,
    ClaimRecord,
    DenialAnalysis,
    DenialClaimPair,
    DenialRecord,
    DenialTotals,
    DenialTrends,
    TriageCandidate,
    TriageCluster,
    TriageQueueItem,
    TriageResult,
)
from src.services.denials.denial_management import DenialManagementService
from src.services.denials.triage import DenialTriageService, TriageSession

__all__ = [
    "AppealWorkflow",
    "ClaimRecord",
    "DenialAnalysis",
    "DenialClaimPair",
    "DenialRecord",
    "DenialTotals",
    "DenialTrends",
    "TriageCandidate",
    "TriageCluster",
    "TriageQueueItem",
    "TriageResult",
    "DenialManagementService",
    "DenialTriageService",
    "TriageSession",
]
