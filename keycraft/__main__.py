"""Run keycraft as ``python -m keycraft``."""

import sys

from keycraft.cli import main

sys.exit(main())
