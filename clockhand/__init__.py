"""Timer reminders for Harvest.

This package watches project source directories and shows a desktop
notification when files are edited without a matching Harvest timer running.
"""

__version__ = "0.1.0"
