"""
Infrastructure
==============

Cross-module infrastructure (database engine and sessions).
"""
