"""codebisect - find the first bad build of VS Code by bisecting released builds."""

__version__ = "0.4.0"
