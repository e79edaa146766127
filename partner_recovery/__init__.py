"""
Partner Recovery — moves customer ownership up the partner tree when a
partner's contract is terminated.
"""

__version__ = "1.0.0"
