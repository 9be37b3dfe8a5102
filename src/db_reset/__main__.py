"""Allow ``python -m db_reset``."""

import sys

from db_reset.cli import main

sys.exit(main())
