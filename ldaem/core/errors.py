"""
Exception types raised by the topic model and its loaders.
"""


class LdaError(Exception):
    """Base class for every error raised by ldaem."""


class NormalizationError(LdaError, ZeroDivisionError):
    """A vector with no positive mass was asked to sum to one."""


class OptimizationError(LdaError, ArithmeticError):
    """Newton-Raphson could not keep the concentration vector positive."""


class ModelParseError(LdaError, ValueError):
    def __init__(self, message: str, line_number: int = 0) -> None:
        self.line_number = line_number
        if line_number:
            message = f"line {line_number}: {message}"
        super().__init__(message)


class CorpusFormatError(LdaError, ValueError):
    def __init__(self, message: str, line_number: int = 0) -> None:
        self.line_number = line_number
        if line_number:
            message = f"line {line_number}: {message}"
        super().__init__(message)
