"""Session configuration loading.

Precedence per field: command-line flag, then environment (SVSH_SUITE,
SVSH_BASE, SVSH_BINDIR, resolved by click), then the YAML config file, then
the suite's default base directory.

Config file (~/.svsh.yaml or --config PATH):

    suite: runit
    basedir: /etc/service
    bindir: /usr/local/bin
    collapse: true
"""

from __future__ import annotations

import logging
from pathlib import Path

import yaml
from pydantic import BaseModel, ConfigDict, ValidationError

from svsh.core.adapters import adapter_class
from svsh.core.errors import ConfigurationError
from svsh.core.models import Session, SuiteKind

logger = logging.getLogger(__name__)

CONFIG_FILENAME = ".svsh.yaml"


def default_config_path() -> Path:
    return Path.home() / CONFIG_FILENAME


class FileConfig(BaseModel):
    """Settings read from the YAML config file."""

    model_config = ConfigDict(extra="forbid")

    suite: str | None = None
    basedir: Path | None = None
    bindir: Path | None = None
    collapse: bool = False


def load_config_file(path: Path | None = None) -> FileConfig:
    """Load the YAML config file.

    A missing default file is not an error; a missing explicit file is.

    Raises:
        ConfigurationError: If the file is unreadable, not YAML or has bad keys
    """
    explicit = path is not None
    config_path = Path(path) if explicit else default_config_path()

    if not config_path.exists():
        if explicit:
            raise ConfigurationError(f"Config file not found: {config_path}")
        return FileConfig()

    try:
        with open(config_path, encoding="utf-8") as f:
            data = yaml.safe_load(f)
    except OSError as e:
        raise ConfigurationError(f"Cannot read config file {config_path}: {e}")
    except yaml.YAMLError as e:
        raise ConfigurationError(f"Invalid YAML in {config_path}: {e}")

    if data is None:
        return FileConfig()
    if not isinstance(data, dict):
        raise ConfigurationError(
            f"Invalid config file {config_path}: expected a mapping, "
            f"got {type(data).__name__}"
        )

    try:
        return FileConfig.model_validate(data)
    except ValidationError as e:
        problems = "; ".join(
            f"{'.'.join(str(x) for x in err['loc'])}: {err['msg']}" for err in e.errors()
        )
        raise ConfigurationError(f"Invalid config file {config_path}: {problems}")


def build_session(
    suite: str | None = None,
    basedir: str | Path | None = None,
    bindir: str | Path | None = None,
    collapse: bool = False,
    config_path: Path | None = None,
) -> Session:
    """Resolve startup settings into an immutable Session.

    Raises:
        ConfigurationError: If the suite is missing/unknown or a directory is invalid
    """
    file_config = load_config_file(config_path)

    suite_kind = SuiteKind.parse(suite or file_config.suite)

    base = Path(basedir) if basedir else file_config.basedir
    if base is None:
        base = adapter_class(suite_kind).default_basedir()
        logger.debug(f"Using default {suite_kind.value} base directory {base}")
    base = base.expanduser()
    if not base.is_dir():
        raise ConfigurationError(f"Base directory {base} does not exist or is not a directory")

    bin_path = Path(bindir) if bindir else file_config.bindir
    if bin_path is not None:
        bin_path = bin_path.expanduser()
        if not bin_path.is_dir():
            raise ConfigurationError(
                f"Binary directory {bin_path} does not exist or is not a directory"
            )

    return Session(
        suite=suite_kind,
        basedir=base,
        bindir=bin_path,
        collapse=collapse or file_config.collapse,
    )
