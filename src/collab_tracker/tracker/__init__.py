"""
Tracker subsystem.

Components:
- provider.py: in-memory session snapshot, subscriptions, mirroring, mutations
- lifecycle.py: start/complete/assign transition rules
- stats.py: dashboard statistics over the snapshot
- api.py: login/logout helpers joining auth and the provider session
"""
