"""
Configuration loader module.

Loads spn_targets.json and the credential files it references.
"""

import json
import logging
import sys
from pathlib import Path

from pydantic import ValidationError

from autospn.domain.config import TargetsConfig
from autospn.domain.errors import ConfigError


logger = logging.getLogger(__name__)

TARGETS_FILE = "spn_targets.json"


class ConfigLoader:
    """
    Load and validate configuration files.

    Args:
        config_dir: Directory containing configuration files. A relative path
            is anchored to the executable when running frozen.
    """

    def __init__(self, config_dir: str | Path = "config"):
        if getattr(sys, "frozen", False) and not Path(config_dir).is_absolute():
            self.config_dir = Path(sys.executable).parent / config_dir
        else:
            self.config_dir = Path(config_dir)

        logger.debug("ConfigLoader initialized with directory: %s", self.config_dir)

    def _load_json_file(self, filepath: Path, required: bool = True) -> dict | None:
        """
        Load and parse a JSON file with clear error messages.

        Raises:
            ConfigError: Required file missing, unreadable, empty or malformed
        """
        if not filepath.exists():
            if required:
                raise ConfigError(
                    f"Configuration file not found: {filepath}\n"
                    f"Hint: Copy the .example.json file and customize it."
                )
            logger.debug("Optional config not found: %s", filepath)
            return None

        try:
            content = filepath.read_text(encoding="utf-8")
        except PermissionError as e:
            raise ConfigError(
                f"Cannot read config file (permission denied): {filepath}\n"
                f"Hint: Check file permissions or if another process has it locked."
            ) from e

        if not content.strip():
            raise ConfigError(
                f"Configuration file is empty: {filepath}\n"
                f"Hint: Add valid JSON content or copy from .example.json"
            )

        try:
            return json.loads(content)
        except json.JSONDecodeError as e:
            raise ConfigError(
                f"Invalid JSON in config file: {filepath}\n"
                f"Error at line {e.lineno}, column {e.colno}: {e.msg}\n"
                f"Hint: Validate JSON syntax. Note: .json files cannot have comments."
            ) from e

    def load_credential_file(self, filepath: str) -> dict:
        """
        Load ``{"username": ..., "password": ...}`` from a credential file.

        Relative paths resolve against the parent of the config directory.
        """
        path = Path(filepath)
        if not path.is_absolute():
            path = self.config_dir.parent / filepath

        logger.debug("Loading credentials from: %s", path)
        data = self._load_json_file(path, required=False)

        if data is None:
            logger.warning("Credential file not found: %s", filepath)
            return {}

        return {
            "username": data.get("username"),
            "password": data.get("password"),
        }

    def load_targets(self, filename: str = TARGETS_FILE) -> TargetsConfig:
        """
        Load target and directory settings, resolving credential files.

        Raises:
            ConfigError: File missing or invalid
        """
        filepath = self.config_dir / filename
        logger.info("Loading SPN targets from: %s", filepath)

        data = self._load_json_file(filepath, required=True)

        try:
            config = TargetsConfig.model_validate(data)
        except ValidationError as e:
            raise ConfigError(f"Invalid configuration in {filepath}:\n{e}") from e

        ids = [target.id for target in config.targets]
        duplicates = sorted({target_id for target_id in ids if ids.count(target_id) > 1})
        if duplicates:
            raise ConfigError(f"Duplicate target ids in {filepath}: {', '.join(duplicates)}")

        for target in config.targets:
            if target.credential_file and not target.password:
                creds = self.load_credential_file(target.credential_file)
                target.username = creds.get("username") or target.username
                target.password = creds.get("password")

            if target.auth == "sql" and not (target.username and target.password):
                raise ConfigError(f"Target {target.id} uses SQL authentication but has no username/password")

        directory = config.directory
        if directory.credential_file and not directory.password:
            creds = self.load_credential_file(directory.credential_file)
            directory.username = creds.get("username") or directory.username
            directory.password = creds.get("password")

        logger.info("Loaded %d SPN targets (%d enabled)", len(config.targets), len(config.enabled_targets))
        return config
