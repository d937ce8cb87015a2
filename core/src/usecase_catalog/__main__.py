from __future__ import annotations

import sys

from usecase_catalog.cli import main

if __name__ == "__main__":
    sys.exit(main())
