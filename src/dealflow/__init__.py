"""Deal pipeline board engine.

This package keeps a Kanban-style deal board consistent with a remote
deal store, providing:
- Pipeline definitions with unconstrained and gated-forward policies
- A pure transition validator shared by drag and explicit actions
- A derived board index with per-column value totals
- A drag session with activation threshold and closest-corners targeting
- Optimistic reconciliation with commit or compensation per deal
- HTTP mutation gateways for the campaign and opportunity APIs
"""
