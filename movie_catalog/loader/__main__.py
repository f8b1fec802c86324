"""Module entrypoint for ``python -m movie_catalog.loader``."""
from __future__ import annotations

from .cli import main


if __name__ == "__main__":
    main()
