"""
Theurgy - Sequential transaction test runs.

Runs ordered, transaction-producing test cases against one shared
ledger and classifies each outcome against its expectation.
"""
