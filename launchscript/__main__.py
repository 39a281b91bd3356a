import sys

from launchscript.cli import main

sys.exit(main())
