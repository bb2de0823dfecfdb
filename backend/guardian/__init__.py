"""
Guardian claims engine: insurance-claim lifecycle for roofing customers.
"""
__version__ = "1.0.0"
