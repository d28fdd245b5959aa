"""
Persistence backends.

Components:
- kv_store.py: string key-value stores (SQLite, in-memory)
- local_mirror.py: whole-collection JSON snapshots over a key-value store
- remote_store.py: PostgREST client for the hosted backend
- change_feed.py: per-table change subscriptions + polling change detector
"""
