"""Module entrypoint for `python -m solarlayers`."""

from __future__ import annotations

from solarlayers.cli import main

if __name__ == "__main__":
    raise SystemExit(main())
