"""
Role-specific deployment strategies and the dispatcher that selects one.
"""
