"""
azmonitor Providers — Azure SDK adapter and client creators.
"""
