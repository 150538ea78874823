# SPDX-License-Identifier: Apache-2.0

"""
Domain logic package - pure functions with no storage or framework access.
"""
