"""
Utility helpers for sidecar
"""
