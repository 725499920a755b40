"""Configuration management for quiltstack."""

import configparser
import dataclasses
import os
from typing import Optional

from quiltstack.utils.logging import debug


@dataclasses.dataclass
class QuiltstackConfig:
    """Configuration options for quiltstack."""
    name_length: int = 30
    refresh_submodules: bool = False
    use_menu: bool = True

    def read_one_config(self, config_path: str):
        """Read configuration from a single file."""
        rawconfig = configparser.ConfigParser()
        rawconfig.read(config_path)
        if rawconfig.has_section("PATCH"):
            self.name_length = rawconfig.getint("PATCH", "name_length", fallback=self.name_length)

        if rawconfig.has_section("REFRESH"):
            self.refresh_submodules = rawconfig.getboolean("REFRESH", "submodules", fallback=self.refresh_submodules)

        if rawconfig.has_section("UI"):
            self.use_menu = rawconfig.getboolean("UI", "use_menu", fallback=self.use_menu)


# Global config singleton
CONFIG: Optional[QuiltstackConfig] = None


def get_config() -> QuiltstackConfig:
    """Get the global configuration, loading it if necessary."""
    global CONFIG
    if CONFIG is None:
        CONFIG = read_config()
    return CONFIG


def read_config() -> QuiltstackConfig:
    """Read configuration from the home and repository config files."""
    config = QuiltstackConfig()
    config_paths = [os.path.expanduser("~/.quiltstackconfig")]

    from quiltstack.git.refs import get_top_level_dir
    root_dir = get_top_level_dir()
    if root_dir is not None:
        config_paths.append(os.path.join(root_dir, ".quiltstackconfig"))
    else:
        debug("Not in a git work tree, skipping repo-level config")

    for p in config_paths:
        # Repository config overrides the home directory one
        if os.path.exists(p):
            config.read_one_config(p)

    return config
