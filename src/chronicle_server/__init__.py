"""Chronicle Server: turn orchestration for narrative combat sessions.

Players (and optionally an autonomous opponent) submit free-text actions
each turn; a reasoning oracle adjudicates the outcome; the scene is updated,
persisted, and its narration rendered into imagery and audio.

Version Management
------------------
``__version__`` is read from the installed package metadata at import time.
The single source of truth is the ``version`` field in ``pyproject.toml``.
``api/server.py`` and the health route import ``__version__`` from here.
"""

from __future__ import annotations

from importlib.metadata import PackageNotFoundError, version

# ---------------------------------------------------------------------------
# Package version: read from pyproject.toml via importlib.metadata.
#
# When the package is installed (``pip install -e .``), importlib.metadata
# resolves the version from the distribution metadata that pip wrote.  If
# the package is imported without being installed we fall back to a static
# string so the application can still start.
# ---------------------------------------------------------------------------
try:
    __version__: str = version("chronicle-server")
except PackageNotFoundError:
    __version__ = "0.3.0"
