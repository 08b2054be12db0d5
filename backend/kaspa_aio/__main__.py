import sys

from kaspa_aio.cli import main

if __name__ == "__main__":
    sys.exit(main())
