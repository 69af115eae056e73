"""
bbl — Bootstrap a BOSH director and its AWS infrastructure.
"""

__version__ = "0.0.1"
