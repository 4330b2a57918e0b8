"""
Trainingsplan - browse, filter and map recurring training sessions
"""

__version__ = "1.0.0"
