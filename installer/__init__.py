"""
Package installation for the bootstrap: base packages, container engine and
task runner.
"""
