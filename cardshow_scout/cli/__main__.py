"""Allow ``python -m cardshow_scout.cli`` execution."""

import sys

from cardshow_scout.cli.run import main

sys.exit(main())
