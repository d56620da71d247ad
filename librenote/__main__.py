# __main__.py
# Allows `python -m librenote ...`
import sys

from .cli import main

if __name__ == "__main__":
    sys.exit(main())
