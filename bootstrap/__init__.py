# bootstrap/__init__.py
# -*- coding: utf-8 -*-
"""
VM bootstrap: converges a freshly booted VM into its deployment role.
"""
