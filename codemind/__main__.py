import sys

from .codemind import main

sys.exit(main())
