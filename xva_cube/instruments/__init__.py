"""
Financial instruments priced by the valuation calculators.

This module provides:
- Abstract base class for instruments
- Interest Rate Swap (IRS) implementation
- FX Forward implementation
"""

from xva_cube.instruments.base import Instrument, InstrumentType
from xva_cube.instruments.fxforward import FXForward
from xva_cube.instruments.irs import IRSwap

__all__ = [
    "Instrument",
    "InstrumentType",
    "IRSwap",
    "FXForward",
]
