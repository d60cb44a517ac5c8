'''
Partial certificate assembly for device-side X.509 certification.
'''

import sys
if (sys.version_info.major, sys.version_info.minor) < (3, 11):  # pragma: no cover
    raise Exception('partcert is not supported on Python versions < 3.11')

from partcert.lib.version import version, verstring
