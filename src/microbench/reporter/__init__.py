"""
Reporters display result sets in the console, or persist them to local files and remote storage.

A reporter is picked by the scheme of the target URI: ``"-"`` (or the ``sys.stdout`` stream)
selects the console, local paths and fsspec URIs select the file reporter.
"""

import os
import sys
from typing import IO

from microbench.types import BenchmarkReporter

from .console import ConsoleReporter
from .file import FileReporter, url_protocol

_reporters: dict[str, type[BenchmarkReporter]] = {
    "stdout": ConsoleReporter,
    "file": FileReporter,
    "memory": FileReporter,
    "s3": FileReporter,
    "gs": FileReporter,
    "gcs": FileReporter,
    "az": FileReporter,
}


def reporter_for(target: str | os.PathLike[str] | IO) -> BenchmarkReporter:
    """
    Instantiate the reporter responsible for ``target``.

    Raises
    ------
    ValueError
        If no reporter is registered for the target's URI scheme.
    """
    if target is sys.stdout or target == "-":
        scheme = "stdout"
    elif isinstance(target, str | os.PathLike):
        scheme = url_protocol(target)
    else:
        scheme = "file"
    if scheme not in _reporters:
        raise ValueError(f"no benchmark reporter registered for scheme {scheme!r}")
    return _reporters[scheme]()


def register_reporter(
    scheme: str, klass: type[BenchmarkReporter], clobber: bool = False
) -> None:
    """Make ``klass`` the reporter for targets with URI scheme ``scheme``."""
    if scheme in _reporters and not clobber:
        raise RuntimeError(
            f"a reporter for scheme {scheme!r} is already registered "
            f"(to replace it, pass clobber=True)"
        )
    _reporters[scheme] = klass
