"""Download, verification and extraction of builds."""

from codebisect.artifacts.cache import BuildCache, InstallRecord


__all__ = ["BuildCache", "InstallRecord"]
