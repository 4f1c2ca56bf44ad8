"""
Question Engine Core

Steps, attempts, usages and the registry that ties behaviours to them.
"""
