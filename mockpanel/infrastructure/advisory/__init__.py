from .client import AdvisoryChannel
from .server import LiveInterviewHandler, create_app

__all__ = ["AdvisoryChannel", "LiveInterviewHandler", "create_app"]
