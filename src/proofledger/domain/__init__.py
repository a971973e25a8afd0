"""Domain layer: proof bookkeeping, selection, reconciliation and sync."""
