import sys

from fmlgen.cli import main

sys.exit(main())
