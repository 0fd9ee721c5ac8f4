# SPDX-License-Identifier: BSD-3-Clause
"""
fruprog version information
"""

__version__ = '1.1.1'
