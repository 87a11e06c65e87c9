"""
Simulation error kinds.

Command entry points raise these after reporting the failure on the event
stream. Faults hit while a tick is processed are reported on the stream
only; they fail a single order and never abort the session.
"""


class SimulationError(Exception):
    """Base class for engine errors."""

    pass


class CapacityExceeded(SimulationError):
    """A station refused admission because its WIP limit is reached."""

    def __init__(self, department_id: int, message: str = ""):
        self.department_id = department_id
        super().__init__(message or f"Department {department_id} is at its WIP limit")


class InvalidRoute(SimulationError):
    """An order's route references a station that does not exist."""

    def __init__(self, order_id: str, department_id: int):
        self.order_id = order_id
        self.department_id = department_id
        super().__init__(f"Order {order_id} routes to unknown department {department_id}")


class InvalidSeed(SimulationError):
    """The seed for procedural generation is malformed."""

    pass


class EmptySchedule(SimulationError):
    """Predetermined generation was requested without any scheduled orders."""

    pass


class SessionClosed(SimulationError):
    """A mutation was attempted after the session completed."""

    pass


class OrderNotFound(SimulationError):
    """No order with the given id is where the command expects it."""

    pass


class InvalidCommand(SimulationError):
    """A command does not apply to the current state."""

    pass


class UndoUnavailable(SimulationError):
    """Nothing to undo or redo, or the inverse no longer applies."""

    pass


class InvalidSettings(InvalidCommand):
    """A settings change does not validate."""

    pass
