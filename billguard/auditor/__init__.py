"""Total-hierarchy resolution and discrepancy/deduction validation engine."""
