import logging
import os
from pathlib import Path

import pytest

from microbench.config import MicrobenchConfig, import_, parse_microbench_config
from microbench.context import PythonInfo

empty = MicrobenchConfig.from_toml({})

test_toml = """
[tool.microbench]
log-level = "DEBUG"
time = 250
warmup = 0
mode = "round-robin"
async = true

[tool.microbench.context.myctx]
name = "myctx"
classpath = "microbench.context.PythonInfo"
arguments = { packages = ["rich", "pyyaml"] }
"""

test_toml_with_unknown_key = (
    test_toml
    + """

[tool.microbench.what]
hello = "world"
"""
)


def test_default_config() -> None:
    assert empty.log_level == "NOTSET"
    assert empty.time == 5000
    assert empty.warmup is None
    assert empty.mode == "sequential"
    assert not empty.asynchronous
    assert empty.context == []


def test_config_load_and_parse(tmp_path: Path) -> None:
    tmp_pyproject = tmp_path / "pyproject.toml"
    tmp_pyproject.write_text(test_toml)

    cfg = parse_microbench_config(tmp_pyproject)
    assert cfg.log_level == "DEBUG"
    assert cfg.time == 250
    assert cfg.warmup == 0
    assert cfg.mode == "round-robin"
    assert cfg.asynchronous
    assert len(cfg.context) == 1
    assert cfg.context[0].name == "myctx"
    assert cfg.context[0].arguments == {"packages": ["rich", "pyyaml"]}


def test_config_load_with_unknown_key(
    tmp_path: Path, caplog: pytest.LogCaptureFixture, monkeypatch: pytest.MonkeyPatch
) -> None:
    tmp_pyproject = tmp_path / "pyproject.toml"
    tmp_pyproject.write_text(test_toml_with_unknown_key)

    # if this doesn't crash, we know that the unknown key does not make it into the config.
    cfg = parse_microbench_config(tmp_pyproject)
    assert cfg != empty

    # autodiscovery with no config available should fail.
    with caplog.at_level(logging.DEBUG):
        tmp_pyproject.unlink()
        monkeypatch.chdir(tmp_path)
        cfg = parse_microbench_config()
        assert cfg == empty
        assert "could not locate pyproject.toml" in caplog.text


@pytest.mark.parametrize(
    "table,match",
    [
        ({"time": 0}, "time must be positive"),
        ({"warmup": -1}, "warmup must be non-negative"),
        ({"mode": "parallel"}, "unknown mode"),
    ],
)
def test_invalid_config_values(table: dict, match: str) -> None:
    with pytest.raises(ValueError, match=match):
        MicrobenchConfig.from_toml(table)


def test_import() -> None:
    assert import_("microbench.context.PythonInfo") is PythonInfo
    assert import_("os.path.join") is os.path.join
    with pytest.raises(ValueError, match="full dotted path"):
        import_("PythonInfo")
