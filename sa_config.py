"""Configuration and logging setup for the spectrum analyzer scripts.

Settings come from built-in defaults, optionally overridden by a user YAML
file. Only the keys the user file names are replaced; nested sections are
merged.

Example ``analyzer.yaml``::

    analyzer:
      address: "GPIB0::20"
      strict_errors: true
    logging:
      level: DEBUG
      file: logs/analyzer.log
"""

import copy
import logging
from logging.handlers import RotatingFileHandler
from pathlib import Path

import yaml

log = logging.getLogger(__name__)

DEFAULT_CONFIG = {
    "analyzer": {
        "address": "GPIB0::18",
        "timeout_ms": 5000,
        "reset_settle_s": 0.5,
        "manufacturer": "Ceyear",
        "strict_errors": False,
    },
    "logging": {
        "level": "INFO",
        "file": None,
    },
}

LOG_FORMAT = "%(asctime)s | %(levelname)s | %(name)s | %(message)s"
LOG_DATEFMT = "%Y-%m-%d %H:%M:%S"


def deep_merge(base, override):
    """Return `base` with `override` merged in; nested dicts merge recursively."""
    out = dict(base)
    for k, v in override.items():
        if isinstance(v, dict) and isinstance(out.get(k), dict):
            out[k] = deep_merge(out[k], v)
        else:
            out[k] = v
    return out


def load_yaml(path):
    path = Path(path)
    if not path.exists():
        log.warning("Config file %s not found, using defaults", path)
        return {}
    with path.open("r", encoding="utf-8") as f:
        data = yaml.safe_load(f) or {}
    if not isinstance(data, dict):
        raise ValueError(f"YAML root must be a mapping: {path}")
    return data


def load_config(path=None):
    """Load configuration, user file over defaults.

    Parameters
    ----------
    path : str or Path or None, optional
        User YAML file. None gives the defaults; a missing file gives the
        defaults with a warning.

    Returns
    -------
    dict
        Merged configuration with ``analyzer`` and ``logging`` sections

    Raises
    ------
    ValueError
        If the file's top level is not a mapping
    """
    cfg = copy.deepcopy(DEFAULT_CONFIG)
    if path is None:
        return cfg
    user_cfg = load_yaml(path)
    cfg = deep_merge(cfg, user_cfg)
    log.debug("Config loaded from %s (exists=%s)", path, Path(path).exists())
    return cfg


def setup_logging(level="INFO", log_file=None):
    """Configure the root logger for console and optional file output.

    Calling it again replaces the handlers installed by an earlier call.

    Parameters
    ----------
    level : str, optional
        Logging level name, by default "INFO"
    log_file : str or Path or None, optional
        Rotating log file (10 MB x 10 backups); console only when None
    """
    root = logging.getLogger()
    root.setLevel(getattr(logging, str(level).upper(), logging.INFO))

    fmt = logging.Formatter(fmt=LOG_FORMAT, datefmt=LOG_DATEFMT)

    handlers = []
    ch = logging.StreamHandler()
    handlers.append(ch)
    if log_file:
        log_file = Path(log_file)
        log_file.parent.mkdir(parents=True, exist_ok=True)
        fh = RotatingFileHandler(
            log_file, maxBytes=10 * 1024 * 1024, backupCount=10, encoding="utf-8"
        )
        handlers.append(fh)

    for old in list(root.handlers):
        root.removeHandler(old)
        old.close()
    for h in handlers:
        h.setFormatter(fmt)
        h.setLevel(root.level)
        root.addHandler(h)
