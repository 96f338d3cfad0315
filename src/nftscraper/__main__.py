import sys

from .bin.cli import main


if __name__ == "__main__":
    main()
    sys.exit(0)
