# errors.py

class SimulationError(ValueError):
    """Base class for errors raised by the simulation engine."""


class InvalidInputError(SimulationError):
    """Parameters or results that the engine cannot compute on."""


class EmptyDatasetError(SimulationError):
    """An aggregation was asked to reduce an empty collection."""
