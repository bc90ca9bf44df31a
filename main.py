"""
Convenience entrypoint for the live intent monitor.

Allows running `python main.py` in addition to `python -m intent_monitor`.
"""

from intent_monitor.cli import main


if __name__ == "__main__":
    raise SystemExit(main())
