"""
Sentiment engine test suite.

All fixtures are explicit and hand-computed (see fixtures.py); property
tests live in contract_tests/.
"""
