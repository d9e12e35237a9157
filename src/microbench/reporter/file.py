import contextlib
import json
import os
from collections.abc import Callable, Iterator
from pathlib import Path
from typing import IO, Any, Literal

import fsspec

from microbench.types import ResultSet

Target = str | os.PathLike[str] | IO


def url_protocol(url: str | os.PathLike[str]) -> str:
    """The fsspec protocol of ``url``, ``"file"`` for plain local paths."""
    protocol, _ = fsspec.core.split_protocol(os.fspath(url))
    return protocol or "file"


def file_suffix(target: Target) -> str:
    """The file extension of a path or named stream, possibly the empty string."""
    if isinstance(target, str | os.PathLike):
        return Path(target).suffix
    return Path(getattr(target, "name", "")).suffix


@contextlib.contextmanager
def open_target(target: Target, mode: Literal["r", "w"]) -> Iterator[IO]:
    """
    Open a local path or fsspec URI as a text stream.

    Open streams are passed through, and left open on exit.
    """
    if hasattr(target, "read") or hasattr(target, "write"):
        yield target  # type: ignore[misc]
        return

    protocol = url_protocol(target)  # type: ignore[arg-type]
    if protocol == "file":
        fd = open(target, mode)  # type: ignore[arg-type]
    else:
        fd = fsspec.filesystem(protocol).open(os.fspath(target), mode)  # type: ignore[arg-type]
    with fd:
        yield fd


def _load_json(fd: IO, **kwargs: Any) -> list[ResultSet]:
    struct = json.load(fd, **kwargs)
    if isinstance(struct, list):
        return [ResultSet.from_json(s) for s in struct]
    return [ResultSet.from_json(struct)]


def _dump_json(result: ResultSet, fd: IO, **kwargs: Any) -> None:
    json.dump(result.to_json(), fd, **kwargs)


def _load_ndjson(fd: IO, **kwargs: Any) -> list[ResultSet]:
    return ResultSet.from_records([json.loads(line, **kwargs) for line in fd if line.strip()])


def _dump_ndjson(result: ResultSet, fd: IO, **kwargs: Any) -> None:
    for record in result.to_records():
        fd.write(json.dumps(record, **kwargs) + "\n")


def _load_yaml(fd: IO, **kwargs: Any) -> list[ResultSet]:
    import yaml

    return ResultSet.from_records(yaml.safe_load(fd) or [])


def _dump_yaml(result: ResultSet, fd: IO, **kwargs: Any) -> None:
    import yaml

    yaml.safe_dump(result.to_records(), fd, **kwargs)


Loader = Callable[..., list[ResultSet]]
Dumper = Callable[..., None]

_formats: dict[str, tuple[Loader, Dumper]] = {
    ".json": (_load_json, _dump_json),
    ".ndjson": (_load_ndjson, _dump_ndjson),
    ".yaml": (_load_yaml, _dump_yaml),
    ".yml": (_load_yaml, _dump_yaml),
}


class FileReporter:
    """
    Reads and writes result sets as JSON, newline-delimited JSON, or YAML.

    The format is chosen by file extension. JSON files hold a whole result set, while
    ndjson and YAML files hold one flat record per task. Besides local paths, any URI
    understood by ``fsspec`` can be used, e.g. ``s3://bucket/results.json``.
    """

    @staticmethod
    def _format(target: Target) -> tuple[Loader, Dumper]:
        ext = file_suffix(target)
        try:
            return _formats[ext]
        except KeyError:
            raise ValueError(f"unsupported benchmark file format {ext!r}") from None

    def read(self, path: Target, **kwargs: Any) -> list[ResultSet]:
        """
        Read all result sets stored in a file.

        Parameters
        ----------
        path: str | os.PathLike[str] | IO
            The file to read, as a local path, fsspec URI, or named open stream.
        **kwargs: Any
            Options for the underlying JSON decoder.

        Returns
        -------
        list[ResultSet]
            The result sets contained in the file, one per distinct run.

        Raises
        ------
        ValueError
            If the extension of the given file is not supported.
        """
        load, _ = self._format(path)
        with open_target(path, "r") as fd:
            return load(fd, **kwargs)

    def write(self, result: ResultSet, path: Target, **kwargs: Any) -> None:
        """
        Write a result set to a file, replacing its previous contents.

        Raises
        ------
        ValueError
            If the extension of the given file is not supported.
        """
        _, dump = self._format(path)
        with open_target(path, "w") as fd:
            dump(result, fd, **kwargs)
