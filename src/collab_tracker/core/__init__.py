"""
Core vocabulary.

Components:
- models.py: User, Project, Task and their wire records
- errors.py: storage error taxonomy
- ports.py: Protocols implemented by the storage backends
- auth.py: fixed two-user authentication
- state.py: AppState wiring container
"""
