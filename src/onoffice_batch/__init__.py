from .actions import DirectRequester as DirectRequester
from .actions import api_action as api_action
from .batching.core import BatchState as BatchState
from .batching.core import RequestBatch as RequestBatch
from .config import OnOfficeSettings as OnOfficeSettings
from .exceptions import ActionError as ActionError
from .exceptions import EmptyResponseError as EmptyResponseError
from .exceptions import EnvelopeError as EnvelopeError
from .exceptions import OnOfficeError as OnOfficeError
from .exceptions import ProtocolError as ProtocolError
from .exceptions import TransportError as TransportError
from .exceptions import UnsupportedOperatorError as UnsupportedOperatorError
from .models import ActionType as ActionType
from .models import Credentials as Credentials
from .models import SignedAction as SignedAction
from .signing import create_action_request as create_action_request
from .transport import ApiContext as ApiContext
from .transport import HttpRequest as HttpRequest
from .transport import HttpxApiContext as HttpxApiContext

__all__ = [
    "ActionError",
    "ActionType",
    "ApiContext",
    "BatchState",
    "Credentials",
    "DirectRequester",
    "EmptyResponseError",
    "EnvelopeError",
    "HttpRequest",
    "HttpxApiContext",
    "OnOfficeError",
    "OnOfficeSettings",
    "ProtocolError",
    "RequestBatch",
    "SignedAction",
    "TransportError",
    "UnsupportedOperatorError",
    "api_action",
    "create_action_request",
]
