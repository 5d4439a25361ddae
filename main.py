import sys

from thesis_build.cli import main

if __name__ == "__main__":
    sys.exit(main())
