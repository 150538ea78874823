# SPDX-License-Identifier: Apache-2.0

"""
E-Gram Panchayat citizen services portal.

Citizens register, browse government services and submit applications;
staff and administrators review applications and update their status.
"""

__version__ = "1.0.0"
