"""
azmonitor API — HTTP surface.
"""
