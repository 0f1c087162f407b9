"""Top-level configuration for planledger."""

import json
import logging
import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Mapping, Optional, Union

from .projectors.config import ProjectorsConfig
from .watcher.config import WatcherConfig

logger = logging.getLogger(__name__)

DEFAULT_DB_PATH = "planledger.db"

ENV_DB = "PLANLEDGER_DB"
ENV_CONFIG = "PLANLEDGER_CONFIG"
ENV_HASH_THRESHOLD_MB = "PLANLEDGER_HASH_THRESHOLD_MB"


@dataclass
class LedgerConfig:
    """
    Main configuration.

    Attributes:
        db_path: SQLite database holding the event log and the projections
        projectors: Projector settings (omit lists, master/slave/part extensions)
        watcher: Scanner and watcher settings
        async_listeners: Run listeners on a worker thread while watching
    """
    db_path: Path = field(default_factory=lambda: Path(DEFAULT_DB_PATH))
    projectors: ProjectorsConfig = field(default_factory=ProjectorsConfig)
    watcher: WatcherConfig = field(default_factory=WatcherConfig)
    async_listeners: bool = True

    def __post_init__(self):
        if isinstance(self.db_path, str):
            self.db_path = Path(self.db_path)
        if isinstance(self.projectors, dict):
            self.projectors = ProjectorsConfig.from_dict(self.projectors)
        if isinstance(self.watcher, dict):
            self.watcher = WatcherConfig(**self.watcher)

    @classmethod
    def from_file(cls, path: Union[str, Path], db_path: Optional[Union[str, Path]] = None) -> "LedgerConfig":
        """
        Load from a JSON file.

        The file holds the projector sections (``filesystem``,
        ``masterfiles``, ``parts``) and optionally a ``watcher`` section.
        """
        with open(path, "r", encoding="utf-8") as f:
            data = json.load(f)
        return cls(
            db_path=Path(db_path) if db_path else Path(data.get("db_path", DEFAULT_DB_PATH)),
            projectors=ProjectorsConfig.from_dict(data),
            watcher=WatcherConfig(**data.get("watcher", {})),
        )

    @classmethod
    def from_env(cls, environ: Optional[Mapping[str, str]] = None) -> "LedgerConfig":
        """
        Build from ``PLANLEDGER_*`` environment variables.

        ``PLANLEDGER_CONFIG`` names a JSON config file,
        ``PLANLEDGER_DB`` the database and ``PLANLEDGER_HASH_THRESHOLD_MB``
        the size above which files are fingerprinted with MD5.
        """
        env = os.environ if environ is None else environ

        db_path = env.get(ENV_DB)
        config_file = env.get(ENV_CONFIG)
        if config_file:
            config = cls.from_file(config_file, db_path=db_path)
        else:
            config = cls(db_path=Path(db_path or DEFAULT_DB_PATH))

        threshold = env.get(ENV_HASH_THRESHOLD_MB)
        if threshold:
            try:
                config.watcher.hash_threshold_bytes = int(float(threshold) * 1024 * 1024)
            except ValueError:
                logger.warning(f"Ignoring invalid {ENV_HASH_THRESHOLD_MB}: {threshold!r}")

        return config
