import sys

from .logger_service import main

sys.exit(main())
