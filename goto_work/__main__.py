import sys

from goto_work.hooks.router import main

sys.exit(main())
