"""License Management webhook verification."""

import logging

__version__ = "1.0.0"

# Silent unless the host application configures logging
logging.getLogger(__name__).addHandler(logging.NullHandler())
