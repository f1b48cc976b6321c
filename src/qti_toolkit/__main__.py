import sys

from qti_toolkit.cli import main

sys.exit(main())
