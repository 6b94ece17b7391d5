"""Termination -- policies, penalty quotes and the early-termination workflow."""

from rental_modules.termination.models import (
    DEFAULT_POLICY,
    PolicyDraft,
    TerminationPolicy,
    TerminationRequest,
    TerminationRequestDetails,
)
from rental_modules.termination.policy_service import TerminationPolicyService
from rental_modules.termination.policy_store import PolicyStore, SqlPolicyStore
from rental_modules.termination.request_store import (
    SqlTerminationRequestStore,
    TerminationRequestStore,
)
from rental_modules.termination.workflow import TerminationRequestWorkflow

__all__ = [
    "DEFAULT_POLICY",
    "PolicyDraft",
    "PolicyStore",
    "SqlPolicyStore",
    "SqlTerminationRequestStore",
    "TerminationPolicy",
    "TerminationPolicyService",
    "TerminationRequest",
    "TerminationRequestDetails",
    "TerminationRequestStore",
    "TerminationRequestWorkflow",
]
