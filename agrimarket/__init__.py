"""
Crop market trading engine.

Order matching, market depth and trade reporting for the
Smart Crop Advisory market pages.
"""

__version__ = "1.0.0"
