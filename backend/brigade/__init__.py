"""
Brigade core: event-driven job orchestration for cluster builds.

Events arrive through the admission gateway, are dispatched to handler
logic registered per event type, and handlers run jobs on a cluster
substrate either one at a time or in groups.
"""

__version__ = "0.1.0"
