# config/__init__.py
"""
Configuration for the peer mesh tool.
"""
