"""
Core utilities shared by the manifest and sync layers.
"""
