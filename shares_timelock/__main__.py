"""Allow running the package as a module: python -m shares_timelock"""

import sys

from shares_timelock.cli import main

if __name__ == "__main__":
    sys.exit(main(sys.argv[1:]))
