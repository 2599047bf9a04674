#!/usr/bin/env python3

"""Compatibility wrapper.

The project is packaged under `src/shoot_dns`. This wrapper allows running
`./shoot-dns.py` from a fresh checkout without installing the package.
"""

import sys
from pathlib import Path


sys.path.insert(0, str(Path(__file__).resolve().parent / "src"))

from shoot_dns.cli import main  # noqa: E402


if __name__ == "__main__":
    main()
