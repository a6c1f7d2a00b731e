"""Configuration loading from CLI args, env vars, and optional YAML file."""

import argparse
import logging
import os
from dataclasses import dataclass

import yaml

logger = logging.getLogger(__name__)

PROG = "logrotee"
VERSION = "0.0.1"
DEFAULT_CHUNK_SIZE = 20 * 1000 * 1000
LOG_LEVELS = ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL")

USAGE_EXAMPLE = (
    "Example usage: verbose_command | logrotee"
    ' --compress "bzip2 {}" --compress-suffix .bz2'
    " --null --chunk 2M"
    " /var/log/verbose_command.log"
)

_SIZE_UNITS = {"": 1, "K": 1000, "M": 1000 ** 2, "G": 1000 ** 3}


class ConfigError(Exception):
    """Raised when the assembled configuration is unusable."""


def _parse_bool(value: str) -> bool:
    return value.strip().lower() in ("true", "1", "yes")


def parse_size(value) -> int:
    """Parse a byte count such as ``20000000``, ``512K`` or ``2M``.

    Suffixes are decimal (K=1000). Raises ConfigError on anything else.
    """
    if isinstance(value, int) and not isinstance(value, bool):
        return value
    text = str(value).strip().upper()
    if text.endswith("B"):
        text = text[:-1]
    unit = text[-1:] if text[-1:] in _SIZE_UNITS else ""
    digits = text[: len(text) - len(unit)].strip()
    if not (digits.isascii() and digits.isdigit()):
        raise ConfigError(f"Cannot parse number: {value}")
    return int(digits) * _SIZE_UNITS[unit]


def _parse_int(value, name: str) -> int:
    try:
        return int(str(value).strip())
    except ValueError:
        raise ConfigError(f"Cannot parse number for {name}: {value}") from None


@dataclass(frozen=True)
class Config:
    log_file_path: str = ""
    compress_command: str = ""
    compress_suffix: str = ""
    null_stdout: bool = False
    chunk_size: int = DEFAULT_CHUNK_SIZE
    dates: bool = False
    max_files: int = 10
    buffer_size: int = 4096
    log_level: str = "WARNING"
    config_file: str = ""

    @property
    def compression_enabled(self) -> bool:
        return bool(self.compress_command)

    @property
    def ring_size(self) -> int:
        """Number of numeric chunk slots; never less than one."""
        return max(1, self.max_files)


def validate_config(config: Config) -> Config:
    """Return config unchanged or raise ConfigError."""
    if not config.log_file_path:
        raise ConfigError("A log file path is required")
    if os.path.isdir(config.log_file_path):
        raise ConfigError(f"Log file path is a directory: {config.log_file_path}")
    if config.chunk_size <= 0:
        raise ConfigError(f"Chunk size must be positive, got {config.chunk_size}")
    if config.buffer_size < 2:
        raise ConfigError(f"Buffer size must be at least 2, got {config.buffer_size}")
    if config.log_level not in LOG_LEVELS:
        raise ConfigError(
            f"Unknown log level {config.log_level!r}, expected one of {', '.join(LOG_LEVELS)}"
        )
    return config


def load_yaml_config(path: str | None) -> dict:
    """Load settings from a YAML file. Returns empty dict if no path."""
    if not path:
        return {}
    try:
        with open(path, "r", encoding="utf-8") as f:
            data = yaml.safe_load(f) or {}
    except FileNotFoundError:
        logger.warning("Config file %s not found, using defaults", path)
        return {}
    except yaml.YAMLError as e:
        raise ConfigError(f"Invalid YAML in {path}: {e}") from e
    if not isinstance(data, dict):
        raise ConfigError(f"Config file {path} must contain a mapping")
    return data


def build_parser() -> argparse.ArgumentParser:
    """Build the CLI argument parser."""
    parser = argparse.ArgumentParser(
        prog=PROG,
        description="Copy stdin to stdout and to a set of size-rotated log files.",
        epilog=USAGE_EXAMPLE,
    )
    parser.add_argument("log_file", nargs="?", help="Path of the live log file")
    parser.add_argument(
        "--compress",
        metavar="CMD",
        help="Command run on each rotated chunk; {} is replaced by its path",
    )
    parser.add_argument(
        "--compress-suffix",
        metavar="SUFFIX",
        help="Suffix of compressed chunks, removed when a slot is reused (e.g. .bz2)",
    )
    parser.add_argument(
        "--null", action="store_true", default=None, help="Do not echo input to stdout"
    )
    parser.add_argument(
        "--dates", action="store_true", default=None,
        help="Name chunks by timestamp instead of a numeric index",
    )
    parser.add_argument("--max-files", metavar="N", help="Number of numeric chunk names to cycle through")
    parser.add_argument("--chunk", metavar="SIZE", help="Rotate after SIZE bytes (suffixes K, M, G)")
    parser.add_argument("--config", metavar="FILE", help="Optional YAML config file")
    parser.add_argument(
        "--verbose", action="store_true", help="Log rotations and compressions to stderr"
    )
    parser.add_argument("--version", action="version", version=f"{PROG} {VERSION}")
    return parser


def _first(*values):
    for value in values:
        if value is not None:
            return value
    return None


def load_config(argv=None, environ=None) -> Config:
    """Build Config from YAML, then env vars, then CLI args (highest precedence)."""
    env = os.environ if environ is None else environ
    args = build_parser().parse_args(argv)

    config_path = _first(args.config, env.get("LOGROTEE_CONFIG"))
    yaml_data = load_yaml_config(config_path)

    def env_bool(key):
        raw = env.get(key)
        return None if raw is None else _parse_bool(raw)

    def yaml_bool(key):
        raw = yaml_data.get(key)
        if raw is None or isinstance(raw, bool):
            return raw
        return _parse_bool(str(raw))

    log_file = _first(args.log_file, yaml_data.get("log_file"))
    chunk = _first(args.chunk, env.get("LOGROTEE_CHUNK"), yaml_data.get("chunk"))
    max_files = _first(args.max_files, env.get("LOGROTEE_MAX_FILES"), yaml_data.get("max_files"))
    log_level = _first(
        "INFO" if args.verbose else None,
        env.get("LOGROTEE_LOG_LEVEL"),
        yaml_data.get("log_level"),
        Config.log_level,
    )

    config = Config(
        log_file_path=str(log_file or ""),
        compress_command=str(_first(
            args.compress, env.get("LOGROTEE_COMPRESS"), yaml_data.get("compress"), ""
        )),
        compress_suffix=str(_first(
            args.compress_suffix, env.get("LOGROTEE_COMPRESS_SUFFIX"),
            yaml_data.get("compress_suffix"), "",
        )),
        null_stdout=bool(_first(args.null, env_bool("LOGROTEE_NULL"), yaml_bool("null_stdout"), False)),
        chunk_size=parse_size(chunk) if chunk is not None else Config.chunk_size,
        dates=bool(_first(args.dates, env_bool("LOGROTEE_DATES"), yaml_bool("dates"), False)),
        max_files=_parse_int(max_files, "max_files") if max_files is not None else Config.max_files,
        buffer_size=_parse_int(yaml_data.get("buffer_size", Config.buffer_size), "buffer_size"),
        log_level=str(log_level).upper(),
        config_file=config_path if config_path and os.path.isfile(config_path) else "",
    )
    return validate_config(config)
