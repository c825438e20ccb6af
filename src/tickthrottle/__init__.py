"""
tickthrottle - supervisord event listener that throttles TICK events
into a capped number of task executions per cycle.
"""

__version__ = "1.0.0"
