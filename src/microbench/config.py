"""Utilities for parsing a ``[tool.microbench]`` config block out of a pyproject.toml file."""

import importlib
import logging
import os
import sys
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

if sys.version_info >= (3, 11):
    from typing import Self

    import tomllib
else:
    import tomli as tomllib
    from typing_extensions import Self

logger = logging.getLogger("microbench.config")

MODES = ("sequential", "round-robin")
"""Available scheduling modes of a benchmark run."""


@dataclass
class ContextProviderDef:
    """
    A POD struct representing a custom context provider definition in a
    pyproject.toml table.
    """

    name: str
    """Name under which the provider should be registered by microbench."""
    classpath: str
    """Full path to the class or callable returning the context dict."""
    arguments: dict[str, Any] = field(default_factory=dict)
    """
    Arguments needed to instantiate the context provider class,
    given as key-value pairs in the table.
    If the class path points to a function, no arguments may be given."""


@dataclass(frozen=True)
class MicrobenchConfig:
    log_level: str = "NOTSET"
    """Log level to use for the ``microbench`` module root logger."""
    time: int | float = 5000
    """Measurement window per task, in milliseconds."""
    warmup: int | float | None = None
    """Warmup window per task in milliseconds. None selects 10% of the measurement window."""
    mode: str = "sequential"
    """Scheduling mode, either ``"sequential"`` or ``"round-robin"``."""
    asynchronous: bool = False
    """Whether to await workloads returning awaitables."""
    context: list[ContextProviderDef] = field(default_factory=list)
    """A list of context provider definitions found in pyproject.toml."""

    @classmethod
    def from_toml(cls, d: dict[str, Any]) -> Self:
        """
        Returns a microbench CLI config by processing fields obtained from
        parsing a [tool.microbench] block in a pyproject.toml file.

        Parameters
        ----------
        d: dict[str, Any]
            Mapping containing the [tool.microbench] table contents,
            as obtained by ``tomllib.load()``.

        Returns
        -------
        Self
            A microbench config instance with the values from pyproject.toml,
            and defaults for values that were not set explicitly.

        Raises
        ------
        ValueError
            If the table contains an invalid measurement window or scheduling mode.
        """
        log_level = d.get("log-level", "NOTSET")
        time = d.get("time", 5000)
        if time <= 0:
            raise ValueError(f"[tool.microbench] time must be positive, got {time}")
        warmup = d.get("warmup", None)
        if warmup is not None and warmup < 0:
            raise ValueError(f"[tool.microbench] warmup must be non-negative, got {warmup}")
        mode = d.get("mode", "sequential")
        if mode not in MODES:
            raise ValueError(f"[tool.microbench] unknown mode {mode!r}, expected one of {MODES}")
        provider_map = d.get("context", {})
        context = [ContextProviderDef(**cpd) for cpd in provider_map.values()]
        return cls(
            log_level=log_level,
            time=time,
            warmup=warmup,
            mode=mode,
            asynchronous=bool(d.get("async", False)),
            context=context,
        )


def import_(resource: str) -> Any:
    """Import a class or function given by its full dotted path, e.g. ``pkg.module.Class``."""
    modname, _, qualname = resource.rpartition(".")
    if not modname:
        raise ValueError(f"expected a full dotted path to a class or function, got {resource!r}")
    module = importlib.import_module(modname)
    return getattr(module, qualname)


def locate_pyproject(stop: os.PathLike[str] = Path.home()) -> os.PathLike[str] | None:
    """
    Locate a pyproject.toml file by walking up from the current directory,
    and checking for file existence, stopping at ``stop`` (by default, the
    current user home directory).

    If no pyproject.toml file can be found at any level, returns None.

    Returns
    -------
    os.PathLike[str] | None
        The path to pyproject.toml.
    """
    cwd = Path.cwd()
    for p in (cwd, *cwd.parents):
        if (pyproject_cand := (p / "pyproject.toml")).exists():
            return pyproject_cand
        if p == stop:
            break
    logger.debug(f"could not locate pyproject.toml in directory {cwd}")
    return None


def parse_microbench_config(
    pyproject_path: str | os.PathLike[str] | None = None,
) -> MicrobenchConfig:
    """
    Load a microbench config from a given pyproject.toml file.

    If no path to the pyproject.toml file is given, an attempt at autodiscovery
    will be made. If that is unsuccessful, an empty config is returned.

    Parameters
    ----------
    pyproject_path: str | os.PathLike[str] | None
        Path to the current project's pyproject.toml file, optional.

    Returns
    -------
    MicrobenchConfig
        The loaded config if found, or a default config.
    """
    pyproject_path = pyproject_path or locate_pyproject()
    if pyproject_path is None:
        # pyproject.toml could not be found, so return an empty config.
        return MicrobenchConfig.from_toml({})

    with open(pyproject_path, "rb") as fp:
        pyproject = tomllib.load(fp)
        return MicrobenchConfig.from_toml(pyproject.get("tool", {}).get("microbench", {}))
