"""Exception hierarchy for product generation."""

from __future__ import annotations


class GaiaError(Exception):
    """Base class for all product generation failures."""


class ComputationError(GaiaError):
    """A single-model formula raised while being evaluated."""

    def __init__(self, product: str, message: str):
        self.product = product
        self.message = message
        super().__init__(f"problem calculating {product}: {message}")


class ClassificationError(GaiaError):
    """No landcover rule matched for a pixel."""

    def __init__(self, pixel: tuple[int, int], reason: str):
        self.pixel = pixel
        self.reason = reason
        super().__init__(f"{reason}, pixel {pixel}")


class ConfidenceError(GaiaError):
    """No confidence rule matched for a pixel."""

    def __init__(self, pixel: tuple[int, int], reason: str):
        self.pixel = pixel
        self.reason = reason
        super().__init__(f"{reason}, pixel {pixel}")


class PersistenceError(GaiaError):
    """Writing a date's results failed after every retry."""

    def __init__(self, path: str, attempts: int, cause: str):
        self.path = path
        self.attempts = attempts
        super().__init__(f"failed to write {path} after {attempts} attempts: {cause}")


class GenerationError(GaiaError):
    """A chip/date generation request failed."""

    def __init__(self, product: str, message: str,
                 pixel: tuple[int, int] | None = None):
        self.product = product
        self.pixel = pixel
        where = f" at pixel {pixel}" if pixel is not None else ""
        super().__init__(f"problem generating {product} products{where}: {message}")
