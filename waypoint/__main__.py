"""Allow ``python -m waypoint``."""

from .cli import main

if __name__ == "__main__":
    main()
