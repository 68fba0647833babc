# models/__init__.py
"""
Data models for node status snapshots.
"""
