"""Events emitted by the dispatcher and the batch engine.

Consumers subscribe by passing an event sink; nothing in the core depends
on them being observed.
"""
