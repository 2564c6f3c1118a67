import sys

from sysadmin_toolkit.bootstrap import main

sys.exit(main())
