"""I/O helper subpackage.

:mod:`fdcons.io.plotting` pulls in matplotlib and is imported on demand.
"""
from . import writer

__all__ = ["writer"]
