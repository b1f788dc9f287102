"""Strategy instance requests and their lifecycle rules."""

from __future__ import annotations

import dataclasses
from dataclasses import dataclass
from enum import Enum
from typing import Any, Mapping

from quantdesk.strategies import lookup


class InstanceStatus(str, Enum):
    """Lifecycle state of a strategy instance."""

    STOPPED = "STOPPED"
    RUNNING = "RUNNING"
    ERROR = "ERROR"
    DELETED = "DELETED"


class TransitionError(ValueError):
    """Raised when an instance cannot move to the requested status."""


_ALLOWED_FROM: dict[InstanceStatus, frozenset[InstanceStatus]] = {
    InstanceStatus.RUNNING: frozenset({InstanceStatus.STOPPED, InstanceStatus.ERROR}),
    InstanceStatus.STOPPED: frozenset({InstanceStatus.RUNNING}),
    InstanceStatus.DELETED: frozenset(
        {InstanceStatus.STOPPED, InstanceStatus.RUNNING, InstanceStatus.ERROR}
    ),
}


@dataclass(frozen=True)
class CreateRequest:
    """Parameters for creating a strategy instance."""

    template_id: str
    name: str = ""
    capital_quota_usdt: float = 0.0
    monthly_inject_usdt: float = 0.0
    cold_sealed_asset_qty: float = 0.0
    max_drawdown_pct: float = 0.0

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> CreateRequest:
        return cls(
            template_id=str(data.get("template_id") or ""),
            name=str(data.get("name") or ""),
            capital_quota_usdt=float(data.get("capital_quota_usdt") or 0.0),
            monthly_inject_usdt=float(data.get("monthly_inject_usdt") or 0.0),
            cold_sealed_asset_qty=float(data.get("cold_sealed_asset_qty") or 0.0),
            max_drawdown_pct=float(data.get("max_drawdown_pct") or 0.0),
        )

    def validate(self) -> CreateRequest:
        """Check the request and return it with its name resolved.

        Raises ValueError for an unknown template or a negative amount. A
        blank name is replaced by the template's name.
        """
        manifest = lookup(self.template_id)
        if min(self.capital_quota_usdt, self.monthly_inject_usdt, self.cold_sealed_asset_qty) < 0:
            raise ValueError("instance amounts must be non-negative")
        name = self.name.strip() or manifest.name
        return dataclasses.replace(self, name=name)


def check_transition(current: str | InstanceStatus, target: str | InstanceStatus) -> InstanceStatus:
    """Return ``target`` as a status if an instance in ``current`` may move to it."""
    current_text = (current.value if isinstance(current, InstanceStatus) else current).upper()
    target_text = (target.value if isinstance(target, InstanceStatus) else target).upper()
    try:
        target_status = InstanceStatus(target_text)
        current_status = InstanceStatus(current_text)
    except ValueError as exc:
        raise TransitionError(
            f"cannot transition instance from {current_text} to {target_text}"
        ) from exc
    if current_status not in _ALLOWED_FROM.get(target_status, frozenset()):
        raise TransitionError(
            f"cannot transition instance from {current_status.value} to {target_status.value}"
        )
    return target_status