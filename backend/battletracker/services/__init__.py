"""
Services Layer

Business logic for the round and pairing engine:
- Pairing algorithms are pure (no session, no persistence)
- Lifecycle, ledger and resolver services accept a Session and raise
  battletracker.errors exceptions; routes stay thin
- Services do NOT depend on HTTP request/response objects
"""
