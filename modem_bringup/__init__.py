"""
modem-bringup - Cellular modem bring-up and antenna diagnostics
"""

__version__ = "1.0.0"
