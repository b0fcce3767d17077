"""
ragbot
Retrieval-augmented question answering for Discord channels
"""

__version__ = "0.1.0"
