"""Orchestration layer — background sweeps and cross-entity workflows."""

from realty_escrow.orchestration.scheduler import SweepScheduler, build_sweep_scheduler
from realty_escrow.orchestration.workflows import cancel_contract_with_refunds

__all__ = ["SweepScheduler", "build_sweep_scheduler", "cancel_contract_with_refunds"]
