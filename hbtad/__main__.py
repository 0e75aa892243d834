import sys

from hbtad.cli import main

sys.exit(main())
