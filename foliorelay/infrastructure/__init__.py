"""Infrastructure Layer: Contains concrete implementations and adapters.

Connects the application to the outside world (AI provider APIs, GitHub,
HTTP, configuration, the console) by implementing the interfaces defined
in the domain layer.
"""
