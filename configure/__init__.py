"""
Host configuration stages: firewall rules and data disk layout.
"""
