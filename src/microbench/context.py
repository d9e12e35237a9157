"""Utilities for collecting context key-value pairs as metadata in benchmark runs."""

import os
import platform
from collections.abc import Callable, Iterable, Mapping, Sequence
from typing import Any

ContextProvider = Callable[[], dict[str, Any]]
"""A function providing a dictionary of context values."""

Context = Mapping[str, Any] | Iterable[ContextProvider]


def system() -> dict[str, str]:
    return {"system": platform.system()}


def cpuarch() -> dict[str, str]:
    return {"cpuarch": platform.machine()}


def python_version() -> dict[str, str]:
    return {"python_version": platform.python_version()}


class PythonInfo:
    """
    A context helper returning version info for requested installed packages.

    If a requested package is not installed, an empty string is returned instead.

    Parameters
    ----------
    packages: Sequence[str]
        Names of the requested packages under which they exist in the current environment.
        For packages installed through ``pip``, this equals the PyPI package name.
    """

    key = "python"

    def __init__(self, packages: Sequence[str] = ()):
        self.packages = tuple(packages)

    def __call__(self) -> dict[str, Any]:
        from importlib.metadata import PackageNotFoundError, version

        result: dict[str, Any] = dict()

        result["version"] = platform.python_version()
        result["implementation"] = platform.python_implementation()
        buildno, buildtime = platform.python_build()
        result["buildno"] = buildno
        result["buildtime"] = buildtime

        packages: dict[str, str] = {}
        for pkg in self.packages:
            try:
                packages[pkg] = version(pkg)
            except PackageNotFoundError:
                packages[pkg] = ""

        result["packages"] = packages
        return {self.key: result}


class PlatformInfo:
    """
    A context helper describing the machine a benchmark runs on.

    Timing numbers are only comparable between runs on similar hardware,
    so this is usually worth recording with every run.
    """

    key = "platform"

    def __call__(self) -> dict[str, Any]:
        result: dict[str, Any] = dict()
        result["architecture"] = platform.machine()
        result["bitness"] = platform.architecture()[0]
        result["processor"] = platform.processor()
        result["system"] = platform.system()
        result["system-version"] = platform.release()
        result["node"] = platform.node()
        result["num_logical_cpus"] = os.cpu_count()
        return {self.key: result}


builtin_providers: dict[str, ContextProvider] = {
    "platform": PlatformInfo(),
    "python": PythonInfo(),
}


def register_context_provider(
    name: str, klass: Callable[..., ContextProvider], arguments: Mapping[str, Any]
) -> None:
    """
    Register a context provider under ``name``, instantiated from ``klass``.

    If ``klass`` is a plain function (i.e. already a provider), no arguments may be given.
    """
    if isinstance(klass, type):
        builtin_providers[name] = klass(**arguments)
    elif arguments:
        raise TypeError(f"context provider {name!r}: cannot pass arguments to a function")
    else:
        builtin_providers[name] = klass


def assemble(context: Context) -> dict[str, Any]:
    """
    Merge the given context into a single dictionary.

    Parameters
    ----------
    context: Mapping[str, Any] | Iterable[ContextProvider]
        Either a ready-made context dictionary, which is copied, or a collection of
        providers, which are called and whose results are merged.

    Raises
    ------
    ValueError
        If two providers return the same context key.
    """
    if isinstance(context, Mapping):
        return dict(context)

    ctx: dict[str, Any] = dict()
    for provider in context:
        val = provider()
        duplicates = set(ctx.keys()) & set(val.keys())
        if duplicates:
            dupe, *_ = duplicates
            raise ValueError(f"got multiple values for context key {dupe!r}")
        ctx.update(val)
    return ctx
