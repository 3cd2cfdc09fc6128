"""Configuration module for codebisect.

This module contains the configuration class threaded through a bisection session.
"""

from codebisect.config.config import BisectConfig


__all__ = ["BisectConfig"]
