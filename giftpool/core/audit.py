"""Audit logging for money-affecting operations."""

import logging
from datetime import datetime, timezone
from decimal import Decimal
from enum import Enum
from typing import Any


logger = logging.getLogger("giftpool.audit")


class AuditAction(str, Enum):
    """Audit action types."""
    # Contribution operations
    CONTRIBUTION_UPSERT = "contribution_upsert"
    CONTRIBUTION_WITHDRAW = "contribution_withdraw"

    # Advancer
    ADVANCER_ASSIGN = "advancer_assign"
    ADVANCER_CLEAR = "advancer_clear"

    # Debt operations
    DEBTS_RECOMPUTE = "debts_recompute"
    DEBT_SETTLE = "debt_settle"


def audit_log(
    action: AuditAction,
    user_id: int | str | None = None,
    details: dict[str, Any] | None = None,
    success: bool = True,
) -> None:
    """
    Log an audit event.

    Args:
        action: The action being performed
        user_id: ID of the user performing the action
        details: Additional details about the action
        success: Whether the action was successful
    """
    event: dict[str, Any] = {
        "timestamp": datetime.now(timezone.utc).isoformat(),
        "action": action.value,
        "success": success,
    }

    if user_id is not None:
        event["user_id"] = str(user_id)

    if details:
        event["details"] = {
            key: str(value) if isinstance(value, Decimal) else value
            for key, value in details.items()
        }

    if success:
        logger.info("AUDIT: %s", event)
    else:
        logger.warning("AUDIT: %s", event)


def audit_contribution_action(
    action: AuditAction,
    user_id: int,
    item_id: int,
    amount: Decimal | None = None,
    details: dict[str, Any] | None = None,
    success: bool = True,
) -> None:
    """Log contribution operation."""
    event_details: dict[str, Any] = {"item_id": item_id}
    if amount is not None:
        event_details["amount"] = amount
    if details:
        event_details.update(details)
    audit_log(action, user_id=user_id, details=event_details, success=success)


def audit_debt_settled(user_id: int, debt_id: int, item_id: int, amount: Decimal) -> None:
    """Log debt settlement."""
    audit_log(
        AuditAction.DEBT_SETTLE,
        user_id=user_id,
        details={"debt_id": debt_id, "item_id": item_id, "amount": amount},
    )


def audit_debts_recomputed(item_id: int, created: int, updated: int, removed: int, mode: str) -> None:
    """Log a debt recomputation for one item."""
    audit_log(
        AuditAction.DEBTS_RECOMPUTE,
        details={
            "item_id": item_id,
            "created": created,
            "updated": updated,
            "removed": removed,
            "mode": mode,
        },
    )
