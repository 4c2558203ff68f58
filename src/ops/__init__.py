"""
Operational helpers: logging setup and status output.
"""
