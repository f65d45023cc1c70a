"""
Applications - runnable entry points built on the shared utils package.
"""
