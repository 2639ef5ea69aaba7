"""
Reson8 - Audio Effects Engine
Real-time pitch shift, echo and reverse with offline WAV export
"""

__version__ = "0.1.0"
