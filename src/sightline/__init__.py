"""sightline -- Multi-session screen observation and analysis.

This package attaches to live visual sources (windows, monitors, cameras),
samples each one on its own periodic loop, and feeds every sample through a
per-session analysis stage that keeps a finding log and a conversational
thread about what is on screen.
"""

__version__ = "0.1.0"
