"""Helpers for locating and importing the Python sources that define benchmark tasks."""

import importlib.util
import os
import sys
from pathlib import Path
from types import ModuleType


def is_importable(name: str | os.PathLike[str]) -> bool:
    """Whether ``name`` is a dotted module name that the current interpreter can import."""
    name = str(name)
    if name in sys.modules:
        return True
    try:
        return importlib.util.find_spec(name) is not None
    except (ImportError, ValueError):
        # raised for missing parent packages and malformed names.
        return False


def module_name(file: str | os.PathLike[str]) -> str:
    """
    Derive a dotted module name from a source file path.

    Examples
    --------
    >>> module_name("path/to/my/tasks.py")
    "path.to.my.tasks"
    """
    path = Path(file).with_suffix("")
    parts = path.parts[1:] if path.anchor else path.parts
    return ".".join(parts)


def load_module(file: str | os.PathLike[str]) -> ModuleType:
    """
    Import a Python source file as a module.

    A file that was imported before is not executed again, so that tasks defined
    at module level keep their identity across repeated collections.

    Parameters
    ----------
    file: str | os.PathLike[str]
        The ``.py`` file to import.

    Returns
    -------
    ModuleType
        The imported module.

    Raises
    ------
    ValueError
        If the path does not point to a Python source file.
    """
    path = Path(file)
    if path.suffix != ".py" or not path.is_file():
        raise ValueError(f"path {str(file)!r} is not a Python file")

    resolved = path.resolve()
    for module in tuple(sys.modules.values()):
        origin = getattr(module, "__file__", None)
        if origin and Path(origin).resolve() == resolved:
            return module

    name = module_name(resolved)
    spec = importlib.util.spec_from_file_location(name, resolved)
    if spec is None or spec.loader is None:
        raise RuntimeError(f"could not import module {str(file)!r}")

    module = importlib.util.module_from_spec(spec)
    sys.modules[name] = module
    try:
        spec.loader.exec_module(module)
    except BaseException:
        del sys.modules[name]
        raise
    return module


def python_files(directory: str | os.PathLike[str]) -> list[Path]:
    """All ``.py`` files below ``directory`` in lexical order, skipping bytecode caches."""
    return sorted(p for p in Path(directory).rglob("*.py") if "__pycache__" not in p.parts)
