import sys

from docrag.cli import main

sys.exit(main())
