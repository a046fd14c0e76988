from sharetrack.calculation.service import InvoiceCalculationService

__all__ = ["InvoiceCalculationService"]
