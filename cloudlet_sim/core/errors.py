"""Exception hierarchy for the simulation core."""


class SimulationError(Exception):
    """Base class for all simulator errors."""


class EngineInvariantError(SimulationError):
    """The event engine reached a state that indicates a programming defect.

    Raised for negative clock movement, out-of-order dispatch or events
    addressed to unknown entities. Never caught inside the package.
    """


class SimulationStateError(SimulationError):
    """A lifecycle operation was called in the wrong engine state."""


class InvalidStatusTransition(SimulationError):
    """A cloudlet status change would move backwards or leave a final state."""


class InvalidDescriptorError(SimulationError, ValueError):
    """A VM or cloudlet descriptor failed validation at submission time."""
