"""
Reson8 Engine Exceptions
Error taxonomy surfaced by the effects engine
"""


class Reson8Error(Exception):
    """Base class for all engine errors"""


class DecodeError(Reson8Error):
    """Input bytes are not a recognised or parseable audio encoding"""


class NoSourceError(Reson8Error):
    """An operation that needs loaded audio was called with none loaded"""

    def __init__(self, operation: str):
        super().__init__(f"No audio loaded for '{operation}'")
        self.operation = operation


class RenderError(Reson8Error):
    """The offline rendering backend failed"""


class InvalidNodeStateError(Reson8Error):
    """A graph node was driven through an invalid lifecycle transition"""
