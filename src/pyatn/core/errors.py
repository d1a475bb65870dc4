"""
Exceptions raised by PyATN.

Two families are kept apart so callers can tell them apart:

- ``ModelConfigurationError``: the caller passed something invalid (empty or
  non-normalized food web, wrongly sized parameters, malformed node config).
  These abort the run and must be fixed in the calling code.
- ``IntegrationError``: numerical trouble during a run. ``NoBracketingError``
  is recovered by the simulation driver, which keeps integrating without
  steady-state detection.
"""


class ATNError(Exception):
    """Base class for all PyATN errors."""


# =============================================================================
# CONFIGURATION ERRORS (fatal to the run)
# =============================================================================

class ModelConfigurationError(ATNError, ValueError):
    """Invalid food web, parameters or initial state supplied by the caller."""


class EmptyFoodWebError(ModelConfigurationError):
    def __init__(self):
        super().__init__("Food web has no nodes")


class FoodWebNotNormalizedError(ModelConfigurationError):
    def __init__(self):
        super().__init__("Food web node IDs must be exactly 0..N-1")


class IncorrectParameterDimensionsError(ModelConfigurationError):
    def __init__(self, expected: int, name: str = "", actual=None):
        self.expected = expected
        self.name = name
        self.actual = actual
        detail = f" ({name} has shape {actual})" if name else ""
        super().__init__(f"Parameter dimensions do not match node count {expected}{detail}")


class FoodWebNodeAbsentError(ModelConfigurationError, KeyError):
    def __init__(self, node_id: int):
        self.node_id = node_id
        super().__init__(f"Food web does not contain node {node_id}")

    def __str__(self) -> str:
        return self.args[0]


class FoodWebDuplicateNodeError(ModelConfigurationError):
    def __init__(self, node_id: int):
        self.node_id = node_id
        super().__init__(f"Food web already contains node {node_id}")


class NodeConfigSyntaxError(ModelConfigurationError):
    """A node config string could not be parsed."""

    def __init__(self, node_config: str, message: str = ""):
        self.node_config = node_config
        if message:
            text = f"Syntax error in node config: {message}: {node_config}"
        else:
            text = f"Syntax error in node config: {node_config}"
        super().__init__(text)


# =============================================================================
# INTEGRATION ERRORS
# =============================================================================

class IntegrationError(ATNError, RuntimeError):
    """Numerical failure while integrating the model equations."""


class NoBracketingError(IntegrationError):
    """The root search for an event could not bracket a sign change."""

    def __init__(self, t_lo: float, t_hi: float, g_lo: float, g_hi: float):
        self.interval = (t_lo, t_hi)
        self.values = (g_lo, g_hi)
        super().__init__(
            f"Switching function does not bracket a root on [{t_lo}, {t_hi}]: "
            f"g = {g_lo}, {g_hi}"
        )


class SolverFailedError(IntegrationError):
    """The underlying ODE stepper reported failure."""
