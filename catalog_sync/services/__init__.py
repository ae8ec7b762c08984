"""Services: normalization, validation, ledger and sync orchestration."""
