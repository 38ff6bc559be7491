"""avastscan — rule-based static scanner for AVAST security categories."""

__version__ = "0.1.0"
