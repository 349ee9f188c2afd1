#  techgen configuration database.
#
#  See LICENSE for licence details.

from .config_src import *
