"""
siteops_engines.approval_policy -- Threshold-based approval authority.

Responsibility:
    Decide whether a role may approve an amount in a financial category,
    which role is the lowest that may, and who an over-limit request
    escalates to.

Architecture position:
    Engines -- pure calculation layer, zero I/O.  Consumes the
    ``ThresholdTable`` compiled by ``siteops_config``.

Invariants enforced:
    - UNLIMITED satisfies every comparison; it is never a numeric stand-in.
    - Monotonic: the ladder orders roles by non-decreasing threshold per
      category (validated at config load), so a higher rung approves
      everything a lower rung does.
    - A role with no configured limit for a category approves nothing.

Failure modes:
    - ValueError for a negative or non-finite amount.
"""

from __future__ import annotations

from decimal import Decimal

from siteops_kernel.domain.access import (
    Threshold,
    ThresholdTable,
    threshold_covers,
)
from siteops_kernel.domain.org import Role


def _check_amount(amount: Decimal) -> Decimal:
    amount = Decimal(amount)
    if not amount.is_finite() or amount < 0:
        raise ValueError(f"Approval amount must be a non-negative number, got {amount}")
    return amount


class ApprovalPolicy:
    """Evaluates approval authority against a threshold table."""

    def __init__(self, table: ThresholdTable):
        self._table = table

    @property
    def table(self) -> ThresholdTable:
        return self._table

    def threshold_for(self, role: Role, category: str) -> Threshold | None:
        return self._table.limit_for(role, category)

    def can_approve(self, role: Role, category: str, amount: Decimal) -> bool:
        """True iff ``amount`` is within the role's limit for ``category``."""
        amount = _check_amount(amount)
        limit = self._table.limit_for(role, category)
        if limit is None:
            return False
        return threshold_covers(limit, amount)

    def get_required_approval_level(self, amount: Decimal, category: str) -> Role:
        """Lowest ladder role able to approve ``amount``; the top role otherwise."""
        amount = _check_amount(amount)
        for role in self._table.ladder:
            if self.can_approve(role, category, amount):
                return role
        return self._table.top_role

    def should_escalate(
        self,
        amount: Decimal,
        category: str,
        submitter_role: Role,
    ) -> bool:
        return not self.can_approve(submitter_role, category, amount)

    def get_next_approver(
        self,
        current_role: Role,
        amount: Decimal,
        category: str,
    ) -> Role | None:
        """First role above ``current_role`` on the ladder able to approve.

        Roles not on the ladder (e.g. site engineers, cashiers) escalate from
        the bottom rung.  Returns the top role when no rung qualifies, and
        None when ``current_role`` is already the top.
        """
        amount = _check_amount(amount)
        ladder = self._table.ladder
        if current_role == self._table.top_role:
            return None
        start = ladder.index(current_role) + 1 if current_role in ladder else 0
        for role in ladder[start:]:
            if self.can_approve(role, category, amount):
                return role
        return self._table.top_role
