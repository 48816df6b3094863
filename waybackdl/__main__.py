import sys

from waybackdl.cli import main

sys.exit(main())
