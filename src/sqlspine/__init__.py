"""
sqlspine - immutable dataset query builder, connection pool and schema tools.

The public surface lives in ``sqlspine.core``; the common names are
re-exported here.
"""

__version__ = "0.1.0"

from sqlspine.core import *  # noqa
from sqlspine.core import __all__  # noqa: F401
