"""
Configuration and command-line tools built on the core library.
"""
