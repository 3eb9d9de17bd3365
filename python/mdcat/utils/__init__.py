"""
Utility functions and classes shared across the mdcat subsystems
"""
from .io import *
