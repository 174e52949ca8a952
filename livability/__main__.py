import sys

from livability.cli import main

sys.exit(main())
