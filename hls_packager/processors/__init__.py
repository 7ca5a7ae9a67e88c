"""
Packaging processors
"""
from .streaming import HLSPackager

__all__ = ["HLSPackager"]
