"""Application version.

Installed builds report the distribution metadata; a source checkout that was
never installed falls back to reading pyproject.toml next to the package.
"""

import tomllib
from importlib.metadata import PackageNotFoundError, version
from pathlib import Path

DISTRIBUTION_NAME = "srs-review-bot"

_PYPROJECT = Path(__file__).resolve().parent.parent / "pyproject.toml"


def get_version() -> str:
    """Return the installed version, or the pyproject.toml version from source."""
    try:
        return version(DISTRIBUTION_NAME)
    except PackageNotFoundError:
        pass
    if _PYPROJECT.is_file():
        with open(_PYPROJECT, "rb") as f:
            return tomllib.load(f)["project"]["version"]
    return "0.0.0+unknown"


__version__: str = get_version()
