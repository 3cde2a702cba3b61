import sys

from urlhunter.cli import main

sys.exit(main())
