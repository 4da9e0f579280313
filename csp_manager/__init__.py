"""
CSP Manager - per-context Content-Security-Policy headers
"""

__version__ = "1.0.0"
