import sys

from aerialmap.main import main

sys.exit(main())
