"""Allow ``python -m qcmt``; the background push re-enters here."""

import sys

from .main import main

sys.exit(main())
