"""Numerical and biological constants for ATN simulation.

This module centralizes the thresholds and tolerances used by the model
equations, the steady-state detectors and the integrator, so that the
values shared between them are defined in exactly one place.
"""

# ============================================================================
# BIOLOGICAL THRESHOLDS
# ============================================================================

# Biomass below this is treated as exactly 0 by the model equations
EXTINCT = 1.0e-15

# ============================================================================
# STEADY-STATE DETECTION
# ============================================================================

# Constant steady state: max |dB/dt / B| at or below this counts as constant
ABS_RELATIVE_DERIVATIVE_THRESHOLD = 1e-10

# Oscillating steady state
RELATIVE_ERROR_TOLERANCE = 0.01  # Max relative error to accept a snapshot match
REQUIRED_MATCHING_STATE_COUNT = 3  # Snapshot matches needed before stopping

# ============================================================================
# INTEGRATION
# ============================================================================

# Adaptive solver
INTEGRATION_MAX_STEP = 100.0
INTEGRATION_ATOL = EXTINCT
INTEGRATION_RTOL = 1.0e-10
INTEGRATION_METHOD = "DOP853"

# Event root search
EVENT_CONVERGENCE = 1e-4  # Convergence threshold in the event time search
EVENT_MAX_ITERATIONS = 1000  # Iteration cap in the event time search
CONSTANT_DETECTOR_MAX_CHECK_INTERVAL = 1.0

# Chunked integration
FIRST_CHUNK_TIMESTEPS = 1000

# ============================================================================
# SIMULATION DEFAULTS
# ============================================================================

DEFAULT_TIMESTEPS = 100
DEFAULT_STEP_SIZE = 0.1

# Node config biomass and carrying capacity are scaled by this
DEFAULT_NODE_CONFIG_BIOMASS_SCALE = 1000

# Sentinel for "never went extinct"
NEVER_EXTINCT = -1
