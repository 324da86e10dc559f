"""Cross-entity workflows.

A retraction touches both aggregates: the contract is cancelled first (under
the contract lock), then each of its ESCROW or DISPUTED payments is refunded
under its own payment lock. Locks are never nested across the two steps.
A payment still PROCESSING is refunded by PaymentService once its
confirmation arrives.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Any, TypedDict

from realty_escrow.logging_config import get_logger

if TYPE_CHECKING:
    import uuid

logger = get_logger(__name__)


class CancellationOutcome(TypedDict, total=False):
    contract_id: str
    status: str
    reason: str
    refunded_payment_ids: list[str]


async def cancel_contract_with_refunds(
    contract_id: uuid.UUID,
    reason: str,
    actor: str,
    session: Any,
    **service_kwargs: Any,
) -> CancellationOutcome:
    """Retract a signed contract and refund the money it collected.

    Args:
        contract_id: Contract to cancel.
        reason: Mandatory, non-empty cancellation reason.
        actor: Party requesting the cancellation.
        session: AsyncSession for database access.
        **service_kwargs: settings / clock / locks / notifier / providers,
            forwarded to the services.

    Returns:
        CancellationOutcome with the final contract status and the refunded
        payments.
    """
    from realty_escrow.services.payment_service import PaymentService
    from realty_escrow.services.retraction_service import RetractionService

    common = {k: v for k, v in service_kwargs.items() if k in ("settings", "clock", "locks")}
    retraction_svc = RetractionService(session, notifier=service_kwargs.get("notifier"), **common)
    payment_svc = PaymentService(
        session,
        providers=service_kwargs.get("providers"),
        notifier=service_kwargs.get("notifier"),
        **common,
    )

    logger.info("workflow.cancel", contract_id=str(contract_id), by=actor)
    contract = await retraction_svc.cancel(contract_id, reason, actor)

    refunded = await payment_svc.refund_contract_payments(
        contract.id, reason=f"Contract cancelled: {reason.strip()}", actor=actor
    )

    logger.info(
        "workflow.cancel_completed",
        contract_id=str(contract_id),
        refunded=len(refunded),
    )
    return {
        "contract_id": str(contract.id),
        "status": contract.status,
        "reason": contract.cancellation_reason or "",
        "refunded_payment_ids": [str(pid) for pid in refunded],
    }
