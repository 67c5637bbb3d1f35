"""Service layer: lifecycle, recurrence, ledger and redemption engines."""
