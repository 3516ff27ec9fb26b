import sys

from .fahtool import main

sys.exit(main())
