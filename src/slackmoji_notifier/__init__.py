"""Slackmoji Notifier - A Slack bot that announces newly added custom emojis.

This package listens to Slack's Socket Mode event stream for emoji changes and,
for every genuinely new emoji, posts an LLM-generated example sentence together
with the emoji's full-size image.

Components:
- main_socket: Socket Mode listener service and shutdown handling
- cli: command line entry point (listen / generate / version)
- slack: Slack transport and event classification
- pipeline: staleness filter, notification engine, aging janitor
- llm: interchangeable text-generation providers
"""

__version__ = "0.1.0"
