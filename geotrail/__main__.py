"""Module entry point: python -m geotrail ..."""

from __future__ import annotations

from geotrail.cli import main


if __name__ == "__main__":
    raise SystemExit(main())
