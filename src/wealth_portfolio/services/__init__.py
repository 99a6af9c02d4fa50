"""Service layer: ledger, metrics, pricing, exchange rates, and storage."""
