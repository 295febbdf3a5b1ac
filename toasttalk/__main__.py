import sys

from toasttalk.console import main

sys.exit(main())
