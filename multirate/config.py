"""Package-wide constants for the multirate steppers."""

# Adams-Bashforth order limits
DEFAULT_ORDER = 3
MAX_ORDER = 8

# Option names used by the stepper factory, e.g. {"AdamsBashforth": {"Order": 3}}
STEPPER_CONFIG_KEY_ORDER = "Order"
