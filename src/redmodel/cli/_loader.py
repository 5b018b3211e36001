"""Model loader: import a Python module and discover Model types."""

from __future__ import annotations

import importlib
import sys
from pathlib import Path

from redmodel.types import Model


def load_models(
    models: str | None = None,
    models_path: str | None = None,
) -> dict[str, type[Model]]:
    """Load Model subclasses from a Python module.

    Args:
        models: Dotted Python import path (e.g. 'myapp.models')
        models_path: Filesystem path to a Python file

    Returns:
        Model classes keyed by type name
    """
    if models_path:
        path = Path(models_path).resolve()
        if not path.exists():
            raise FileNotFoundError(f"Models path not found: {models_path}")
        parent = str(path.parent)
        if parent not in sys.path:
            sys.path.insert(0, parent)
        module = importlib.import_module(path.stem)
    elif models:
        module = importlib.import_module(models)
    else:
        raise ValueError("One of --models or --models-path is required")

    found: dict[str, type[Model]] = {}
    for attr_name in dir(module):
        obj = getattr(module, attr_name)
        if isinstance(obj, type) and issubclass(obj, Model) and obj is not Model:
            found[obj.__schema__.type_name] = obj
    return found
