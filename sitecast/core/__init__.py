"""Pipeline core: errors, hashing, scratch scoping, ledger and orchestration."""
