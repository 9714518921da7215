"""
shopagent_logs - Markdown run logs for shopping tasks

Usage:
    from shopagent_logs import create_run_logger

    run_log = create_run_logger("samsung phone under 20k", url="https://www.amazon.in/")
    run_log.log_heading("SEARCHING")
    run_log.log_text("Searching for samsung phone")
    run_log.finalize(success=True, duration_ms=5400)
"""

from .run_logger import RunLogger, create_run_logger

__all__ = [
    'RunLogger',
    'create_run_logger',
]

__version__ = '0.1.0'
