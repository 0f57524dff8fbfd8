"""Configuration and checkpoints of time steppers."""

from multirate.io.serializers import (
    load_config,
    load_stepper,
    save_config,
    save_stepper,
    stepper_from_config,
    stepper_to_config,
)

__all__ = [
    "save_config",
    "load_config",
    "stepper_from_config",
    "stepper_to_config",
    "save_stepper",
    "load_stepper",
]
