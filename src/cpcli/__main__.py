"""Allow running cpcli with ``python -m cpcli``."""

from .cli import main

if __name__ == "__main__":
    main()
