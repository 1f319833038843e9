"""
KeyRunner - keyword-driven UI test automation.
"""

__version__ = "0.1.0"
