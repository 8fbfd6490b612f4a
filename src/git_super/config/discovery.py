from pathlib import Path

from git_super.core.system import get_xdg_config_home


CONFIG_FILE_NAMES = (".gitsuper.toml", "gitsuper.toml")


def find_toml_config_file() -> Path | None:
    """Find the TOML configuration file for git-super.

    Searches in the following order:
    1. .gitsuper.toml / gitsuper.toml in current directory
    2. .gitsuper.toml / gitsuper.toml in git repository root (if in a git repo)
    3. config.toml in user config directory/git_super/ (platform-specific)
    """
    candidates = [Path(name).resolve() for name in CONFIG_FILE_NAMES]

    git_root = find_git_root()
    if git_root:
        candidates.extend(git_root / name for name in CONFIG_FILE_NAMES)

    candidates.append(get_git_super_config_dir() / "config.toml")

    for candidate in candidates:
        if candidate.exists() and candidate.is_file():
            return candidate

    return None


def find_git_root(path: Path | None = None) -> Path | None:
    """Find the root directory of a git repository."""
    import subprocess  # nosec B404 - safe usage for git commands only

    if path is None:
        path = Path.cwd()

    try:
        # nosec B603, B607 - safe: hardcoded git command, no user input
        result = subprocess.run(
            ["git", "rev-parse", "--show-toplevel"],
            cwd=path,
            capture_output=True,
            text=True,
            check=True,
        )
        return Path(result.stdout.strip())
    except (subprocess.CalledProcessError, FileNotFoundError):
        return None


def get_git_super_config_dir() -> Path:
    """Get the git-super configuration directory.

    Returns:
        Path to the git_super directory within the user config directory.
    """
    return get_xdg_config_home() / "git_super"
