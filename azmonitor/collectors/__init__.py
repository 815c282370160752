"""
azmonitor Collectors — metrics collection against cloud monitoring APIs.
"""
