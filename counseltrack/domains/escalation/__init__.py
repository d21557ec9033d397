# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Escalation domain.

Walks unacknowledged risk situations up a chain of staff roles.
"""

from counseltrack.domains.escalation.chain import (
    EscalationChain,
    EscalationRung,
    chain_for,
)
from counseltrack.domains.escalation.service import (
    EscalationConflictError,
    EscalationNotFoundError,
    EscalationService,
    EscalationServiceError,
    InvalidEscalationTransitionError,
)

__all__ = [
    "EscalationChain",
    "EscalationConflictError",
    "EscalationNotFoundError",
    "EscalationRung",
    "EscalationService",
    "EscalationServiceError",
    "InvalidEscalationTransitionError",
    "chain_for",
]
