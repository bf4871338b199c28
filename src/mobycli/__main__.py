"""mobycli entry point.

Supports: python -m mobycli
"""

from .app import main

if __name__ == "__main__":
    main()
