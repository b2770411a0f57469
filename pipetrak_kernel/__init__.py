"""
PipeTrak Kernel

Shared foundation for the progress-reporting core:
- Typed exceptions with machine-readable codes
- Structured JSON logging
- Decimal value objects (percentages with an explicit undefined state)
- Injectable clock for "today"-relative date ranges
"""

__version__ = "0.1.0"
