"""Allow ``python -m pymapstore``."""

import sys

from pymapstore.cli import main

sys.exit(main())
