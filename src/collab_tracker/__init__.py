"""
collab_tracker: shared project/task tracker for a small team.

Projects and tasks live in a hosted relational backend with a local mirror
as backup and fallback. See tracker/provider.py for the synchronization rules.
"""
