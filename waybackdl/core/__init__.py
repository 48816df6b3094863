"""Index client, fetcher, ledger and scheduler."""
