"""
Live intent monitor package.

Streams microphone audio to a realtime speech service, shows the running
transcript, and collects the questions and commands the service reports back.
The default entrypoint for local experiments is ``python -m intent_monitor``.
"""

__all__ = [
    "capture",
    "codec",
    "config",
    "interfaces",
    "meter",
    "models",
    "protocol",
    "session",
    "state",
]
