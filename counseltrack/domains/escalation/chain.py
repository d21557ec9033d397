# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Escalation chains.

Each risk level maps to an ordered list of rungs. CRITICAL situations
climb to the principal; everything else stops at the assistant principal.
"""

from dataclasses import dataclass

from counseltrack.core.config.settings import EscalationSettings
from counseltrack.infrastructure.database.models.escalation import EscalationRole
from counseltrack.infrastructure.database.models.student import RiskLevel

CRITICAL_CHAIN: tuple[EscalationRole, ...] = (
    EscalationRole.COUNSELOR,
    EscalationRole.ASSISTANT_PRINCIPAL,
    EscalationRole.PRINCIPAL,
)

STANDARD_CHAIN: tuple[EscalationRole, ...] = (
    EscalationRole.COUNSELOR,
    EscalationRole.ASSISTANT_PRINCIPAL,
)


@dataclass(frozen=True)
class EscalationRung:
    """One step of a chain: who is notified and where."""

    role: EscalationRole
    contact: str


class EscalationChain:
    """Ordered rungs for one risk level."""

    def __init__(self, rungs: list[EscalationRung]) -> None:
        if not rungs:
            raise ValueError("An escalation chain needs at least one rung")
        self._rungs = tuple(rungs)

    @property
    def rungs(self) -> tuple[EscalationRung, ...]:
        return self._rungs

    @property
    def first(self) -> EscalationRung:
        return self._rungs[0]

    def __len__(self) -> int:
        return len(self._rungs)

    def index_of(self, role: EscalationRole) -> int:
        """Position of a role in the chain.

        Raises:
            ValueError: If the role is not part of this chain.
        """
        for index, rung in enumerate(self._rungs):
            if rung.role == role:
                return index
        raise ValueError(f"{role.value} is not part of this escalation chain")

    def next_after(self, role: EscalationRole) -> EscalationRung | None:
        """Rung above role, or None when role is the top of the chain."""
        index = self.index_of(role)
        if index + 1 >= len(self._rungs):
            return None
        return self._rungs[index + 1]


def role_contacts(settings: EscalationSettings) -> dict[EscalationRole, str]:
    """Configured contact per role."""
    return {
        EscalationRole.COUNSELOR: settings.counselor_contact,
        EscalationRole.ASSISTANT_PRINCIPAL: settings.assistant_principal_contact,
        EscalationRole.PRINCIPAL: settings.principal_contact,
    }


def chain_for(risk_level: RiskLevel | None, settings: EscalationSettings) -> EscalationChain:
    """Build the chain that applies to a risk level.

    Args:
        risk_level: Risk level of the escalation; None uses the standard chain.
        settings: Escalation settings holding the role contacts.

    Returns:
        EscalationChain with contacts filled in.
    """
    roles = CRITICAL_CHAIN if risk_level == RiskLevel.CRITICAL else STANDARD_CHAIN
    contacts = role_contacts(settings)
    return EscalationChain([EscalationRung(role=role, contact=contacts[role]) for role in roles])
