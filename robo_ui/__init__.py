"""RoboUI — configure, launch and watch robocopy jobs.

Builds robocopy command lines from saved job presets, supervises the
robocopy process, and summarises its progress report as it streams.
"""

__version__ = "1.0.0"
__app_name__ = "RoboUI"
