"""
spcduino Command-Line Interface
===============================

- **spcplay**: Inspect, compose and play SPC files on the spcduino

The tool is a Click-based CLI application with comprehensive help and
error reporting.
"""

__all__ = ["spcplay"]
