"""
CLI tools for the Pacific Discovery Engine.
"""

from tools.explore import main, build_parser

__all__ = [
    "main",
    "build_parser",
]
