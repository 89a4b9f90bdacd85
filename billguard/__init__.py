"""BillGuard - hospital bill total-hierarchy and deduction auditor."""

__version__ = "1.0.0"
