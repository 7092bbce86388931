"""
lanchat - serverless chat for peers on the same local network
"""

__version__ = "0.1.0"
__logo__ = "💬"
