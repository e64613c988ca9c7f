"""Generation-time diagnostics"""


class BridgeError(Exception):
    """Error with the line of the offending declaration (0 when unknown)."""

    def __init__(self, msg: str, line: int = 0):
        self.msg: str = msg
        self.line: int = line
        super().__init__(msg)

    def with_line(self, line: int) -> "BridgeError":
        """Attach a line if the error does not carry one yet"""
        if not self.line:
            self.line = line
        return self


class UnresolvedType(BridgeError):
    """A referenced type name has no declaration."""


class UnsupportedTypeCombination(BridgeError):
    """A type is declared but cannot cross the boundary in this position."""


class ParseError(BridgeError):
    """Bridge module text could not be parsed."""
