"""talkbridge - drive voice-synthesis editors through one talker surface."""

from .generic import LocatorTalker
from .parameters import ParameterCatalog, ParameterDescriptor
from .profile import ProductProfile
from .result import Result
from .state import OperationalState, WindowSignal
from .talker import TalkerFacade
from .updater import TalkerUpdater

__version__ = "0.1.0"

__all__ = [
    "LocatorTalker",
    "OperationalState",
    "ParameterCatalog",
    "ParameterDescriptor",
    "ProductProfile",
    "Result",
    "TalkerFacade",
    "TalkerUpdater",
    "WindowSignal",
]
