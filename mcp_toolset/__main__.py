import sys

from mcp_toolset.cli import main

sys.exit(main())
