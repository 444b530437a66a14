import sys

from arrestwatch.cli import main

sys.exit(main())
