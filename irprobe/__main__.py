"""Allow ``python -m irprobe``."""

from .main import main

raise SystemExit(main())
