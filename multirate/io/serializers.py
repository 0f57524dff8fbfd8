"""Build steppers from option mappings and save/load them as JSON."""

import json
import logging
from pathlib import Path
from typing import Any, Dict, Mapping, Union

import numpy as np

from multirate.config import STEPPER_CONFIG_KEY_ORDER
from multirate.steppers import STEPPERS
from multirate.steppers.base import TimeStepper

logger = logging.getLogger(__name__)


def _to_json(d: Any) -> Any:
    """Convert numpy containers and scalars to plain JSON types."""
    if isinstance(d, np.ndarray):
        return d.tolist()
    if isinstance(d, dict):
        return {k: _to_json(v) for k, v in d.items()}
    if isinstance(d, (list, tuple)):
        return [_to_json(x) for x in d]
    if isinstance(d, (np.floating, np.integer)):
        return float(d) if isinstance(d, np.floating) else int(d)
    return d


def save_config(config: Dict[str, Any], path: Union[str, Path]) -> None:
    """
    Save a configuration (dict) to JSON.
    Numpy arrays and scalars are converted to plain lists and numbers.
    """
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)
    with open(path, "w", encoding="utf-8") as f:
        json.dump(_to_json(config), f, indent=2, ensure_ascii=False)


def load_config(path: Union[str, Path]) -> Dict[str, Any]:
    """Load a configuration from JSON."""
    path = Path(path)
    with open(path, "r", encoding="utf-8") as f:
        return json.load(f)


def _stepper_name(stepper: TimeStepper) -> str:
    for name, cls in STEPPERS.items():
        if type(stepper) is cls:
            return name
    raise ValueError(f"No configuration name registered for {type(stepper).__name__}")


def stepper_to_config(stepper: TimeStepper) -> Dict[str, Dict[str, Any]]:
    """Option mapping describing ``stepper``, e.g. {"AdamsBashforth": {"Order": 3}}."""
    return {_stepper_name(stepper): {STEPPER_CONFIG_KEY_ORDER: stepper.order}}


def stepper_from_config(config: Mapping[str, Any]) -> TimeStepper:
    """
    Build a stepper from its option mapping.

    Args:
        config: one-entry mapping from stepper name to its options,
            e.g. {"AdamsBashforth": {"Order": 3}}.

    Returns:
        The configured stepper.

    Raises:
        ValueError: unknown stepper name, missing or unexpected options,
            or an invalid order.
    """
    if not isinstance(config, Mapping) or len(config) != 1:
        raise ValueError(f"Stepper config must map exactly one stepper name to options: {config!r}")
    (name, options), = config.items()
    if name not in STEPPERS:
        raise ValueError(f"Unknown stepper {name!r}; available: {sorted(STEPPERS)}")
    if not isinstance(options, Mapping):
        raise ValueError(f"Options of {name} must be a mapping, got {options!r}")
    unexpected = set(options) - {STEPPER_CONFIG_KEY_ORDER}
    if unexpected:
        raise ValueError(f"Unexpected options for {name}: {sorted(unexpected)}")
    if STEPPER_CONFIG_KEY_ORDER not in options:
        raise ValueError(f"Missing option {STEPPER_CONFIG_KEY_ORDER!r} for {name}")
    stepper = STEPPERS[name](options[STEPPER_CONFIG_KEY_ORDER])
    logger.debug("Created %r from config", stepper)
    return stepper


def save_stepper(stepper: TimeStepper, path: Union[str, Path]) -> None:
    """Checkpoint a stepper: its registered name and state_dict, as JSON."""
    save_config({"stepper": _stepper_name(stepper), "state": stepper.state_dict()}, path)


def load_stepper(path: Union[str, Path]) -> TimeStepper:
    """Rebuild a stepper saved with save_stepper."""
    checkpoint = load_config(path)
    try:
        name = checkpoint["stepper"]
        state = checkpoint["state"]
    except (KeyError, TypeError) as e:
        raise ValueError(f"Malformed stepper checkpoint {path}: {e}") from e
    if name not in STEPPERS:
        raise ValueError(f"Unknown stepper {name!r} in checkpoint {path}")
    return STEPPERS[name].from_state_dict(state)
