"""tabdelta utilities package.

This package contains helpers for configuration files, run folders and
logging setup.
"""
