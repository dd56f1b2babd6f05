"""Allow running as: python -m spec_forge"""

import sys

from spec_forge.main import main

if __name__ == "__main__":
    sys.exit(main())
