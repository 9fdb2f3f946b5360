"""Host-side stores: alias JSON document, running snapshot, execution history (SQLite)."""
