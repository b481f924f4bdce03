"""
Settings shared by the inversion engine: the numba options of the kernels
and the loading of inversion settings from json/yaml files.
"""

from __future__ import annotations

import json
import logging
import os
from collections.abc import Iterable, Mapping
from pathlib import Path
from typing import Any, Union

import yaml

from probinv.errors import ConfigurationError

log = logging.getLogger(__name__)


def _env_flag(name: str, default: bool) -> bool:
    val = os.getenv(name)
    if not val:
        return default
    return val.lower() in ("1", "t", "true")


# Options of every numba kernel, read once from the environment. They must be
# changed before probinv.math is imported, the kernels are compiled on import.
# fastmath stays off: the kernels compare against 0, 1 and nan.
numba_math_defaults_kwargs = {
    "parallel": _env_flag("PROBINV_PARALLEL", False),
    "fastmath": _env_flag("PROBINV_FASTMATH", False),
}


def numba_math_defaults(**overrides: Any) -> dict:
    """Numba options of the kernels, with some of them overridden.

    Examples
    --------
    >>> from numba import njit
    >>> from probinv.utils import numba_math_defaults as nb_defaults
    >>> @njit(**nb_defaults(parallel=False)) # def kernel(...): ...
    """
    options = dict(numba_math_defaults_kwargs)
    options.update(overrides)
    return options


_LOADERS = {".json": json.load, ".yaml": yaml.safe_load, ".yml": yaml.safe_load}


def load_config(
    config: Union[Mapping, str, Path],
    required: Iterable[str] = (),
    allowed: Iterable[str] | None = None,
) -> dict:
    """
    Inversion settings from a mapping or a json/yaml file, checked against
    the expected keys.

    Parameters
    ----------
    config
        A mapping, or the path of a ``.json``, ``.yaml`` or ``.yml`` file
        holding one
    required
        Keys that must be present
    allowed
        All the accepted keys; any key is accepted if None

    Raises
    ------
    ConfigurationError
        for an unknown file type, a file not holding a mapping, or missing or
        unknown keys
    """
    if not isinstance(config, Mapping):
        path = Path(config)
        loader = _LOADERS.get(path.suffix.lower())
        if loader is None:
            raise ConfigurationError(
                f"cannot read inversion settings from {path}: "
                f"expected one of {sorted(_LOADERS)}"
            )
        log.debug(f"loading inversion settings from {path}")
        with path.open() as f:
            config = loader(f)
        if not isinstance(config, Mapping):
            raise ConfigurationError(f"{path} does not hold a mapping")

    missing = sorted(set(required) - set(config))
    if missing:
        raise ConfigurationError(f"missing configuration keys {missing}")
    if allowed is not None:
        unknown = sorted(set(config) - set(allowed))
        if unknown:
            raise ConfigurationError(f"unknown configuration keys {unknown}")
    return dict(config)
