"""Allow ``python -m velo``."""

from velo.cli import main

raise SystemExit(main())
