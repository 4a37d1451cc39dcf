"""
Utility helpers for the Ostrom spot-price bridge.
"""
