# SPDX-License-Identifier: Apache-2.0
"""
Extension SDK Tests

Conformance tests for table plugins (schema, query-context decoding,
dispatch, wire envelopes) and for the shared core helpers.
"""
