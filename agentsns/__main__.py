import sys

from agentsns.cli import main

sys.exit(main())
