"""
Utility modules for syntree.
"""

from syntree.utils.disposable import Disposable
from syntree.utils.logger import OutputChannel, configure_logging

__all__ = ["Disposable", "OutputChannel", "configure_logging"]
