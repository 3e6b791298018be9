"""Event-sourced building blocks for YAML-defined command workflows."""

__version__ = "0.1.0"