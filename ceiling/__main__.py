"""Allow ``python -m ceiling``."""

import logging
import sys

from .pipeline import main

logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s - %(levelname)s - %(message)s",
    handlers=[logging.StreamHandler(sys.stdout)],
)

raise SystemExit(main())
