from pathlib import Path

import platformdirs


def get_xdg_config_home() -> Path:
    """Get the XDG_CONFIG_HOME directory using platformdirs.

    Returns:
        Path to the user config directory (cross-platform).
    """
    return Path(platformdirs.user_config_dir())


def get_default_storage_dir() -> Path:
    """Get the directory holding the encrypted credentials file.

    Returns:
        Path to ``~/.gitsuper``.
    """
    return Path.home() / ".gitsuper"
