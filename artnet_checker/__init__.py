"""
DMX Art-Net Checker.

A small lighting-control service: an HTTP API that drives DMX512 channel
values over Art-Net and manages a set of named YAML configuration files.
"""

__version__ = "1.0.0"
