from __future__ import annotations

import importlib
import inspect
from typing import Callable


def resolve_callable(path: str, required_params: tuple[str, ...] | None = None) -> Callable:
    """Import ``<module>:<attribute>`` and check that it is callable.

    ``required_params`` pins the leading parameter names, so a misconfigured
    factory fails at startup rather than on the first sweep.
    """
    module_name, separator, attr_name = path.partition(":")
    if not separator or not module_name or not attr_name:
        raise ValueError(f"Invalid callable path '{path}'. Expected '<module>:<callable>'.")

    try:
        module = importlib.import_module(module_name)
    except ModuleNotFoundError as exc:
        raise ValueError(f"Cannot import module '{module_name}' for '{path}'.") from exc

    target = getattr(module, attr_name, None)
    if target is None:
        raise ValueError(f"Module '{module_name}' has no attribute '{attr_name}'.")
    if not callable(target):
        raise ValueError(f"Resolved object '{path}' is not callable.")

    if required_params:
        leading = tuple(inspect.signature(target).parameters)[: len(required_params)]
        if leading != required_params:
            raise ValueError(
                f"Callable '{path}' must start with parameters {required_params}. "
                f"Found parameters {leading}."
            )

    return target
