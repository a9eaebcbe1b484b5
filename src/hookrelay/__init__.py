"""
hookrelay: durable webhook dispatch, job queue and delivery engine.

Host applications call ``Dispatcher.dispatch()`` once per logical event;
a scheduled worker drains the queue with ``Dispatcher.process_batch()``.
"""

__version__ = "1.1.0"
