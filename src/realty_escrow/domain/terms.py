"""Contract terms: the monetary and duration data a contract is drafted from.

Validated once at creation. After that the terms are read by the invoice
composer, the document renderer and the natural-expiry sweep.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date

from realty_escrow.domain.enums import ContractType, DurationMode, PropertyKind
from realty_escrow.domain.exceptions import ContractValidationError
from realty_escrow.domain.timekeeping import add_months

MAX_DURATION_MONTHS = 120


@dataclass(frozen=True)
class ContractTerms:
    """Everything needed to price and date a contract.

    Attributes:
        contract_type: Legal template.
        property_kind: LAND or BUILT, only meaningful for sale promises.
        monthly_rent: Rent in whole units (leases, mandates, attestations).
        sale_price: Price in whole units (sale promises).
        deposit_months: Months of rent held as deposit.
        advance_months: Months of rent paid up front.
        duration_mode: How the end of the contract is expressed.
        start_date: First day of the contract.
        end_date: Last day, for FIXED_END_DATE.
        duration_months: Length, for DURATION_IN_MONTHS.
    """

    contract_type: ContractType
    start_date: date
    duration_mode: DurationMode = DurationMode.INDEFINITE
    property_kind: PropertyKind | None = None
    monthly_rent: int = 0
    sale_price: int = 0
    deposit_months: int = 0
    advance_months: int = 0
    end_date: date | None = None
    duration_months: int | None = None

    def validate(self) -> None:
        """Raise ContractValidationError if the terms are inconsistent."""
        ct = self.contract_type
        if ct is ContractType.SALE_PROMISE:
            if self.sale_price <= 0:
                raise ContractValidationError("A sale promise requires sale_price > 0")
            if self.property_kind is None:
                raise ContractValidationError("A sale promise requires a property_kind")
        elif self.monthly_rent <= 0:
            raise ContractValidationError(f"{ct.value} requires monthly_rent > 0")

        if self.deposit_months < 0 or self.advance_months < 0:
            raise ContractValidationError("deposit_months and advance_months must be >= 0")
        if self.sale_price < 0:
            raise ContractValidationError("sale_price must be >= 0")

        mode = self.duration_mode
        if mode is DurationMode.FIXED_END_DATE:
            if self.end_date is None or self.end_date <= self.start_date:
                raise ContractValidationError("end_date must be after start_date")
            if self.duration_months is not None:
                raise ContractValidationError(
                    "duration_months is not allowed with a fixed end date"
                )
        elif mode is DurationMode.DURATION_IN_MONTHS:
            months = self.duration_months
            if months is None or not 1 <= months <= MAX_DURATION_MONTHS:
                raise ContractValidationError(
                    f"duration_months must be between 1 and {MAX_DURATION_MONTHS}"
                )
            if self.end_date is not None:
                raise ContractValidationError(
                    "end_date is not allowed with a duration in months"
                )
        elif mode is DurationMode.INDEFINITE:
            if self.end_date is not None or self.duration_months is not None:
                raise ContractValidationError(
                    "An indefinite contract carries no end_date or duration_months"
                )

    def computed_end_date(self) -> date | None:
        """Date after which the contract has run its course, or None if indefinite."""
        if self.duration_mode is DurationMode.FIXED_END_DATE:
            return self.end_date
        if self.duration_mode is DurationMode.DURATION_IN_MONTHS and self.duration_months:
            return add_months(self.start_date, self.duration_months)
        return None
