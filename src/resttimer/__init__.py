"""resttimer: a drift-compensated rest-period countdown between training sets."""

__version__ = "0.1.0"
