"""
Errors raised by node actions.
"""


class ActionError(Exception):
    """A single node action failed. The only failure the engine interprets."""

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message
