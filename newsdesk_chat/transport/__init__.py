from .http_client import HttpChatClient
from .socket_channel import ChannelUnavailableError, SocketChannel
from .session_backend import PushSessionBackend, RequestSessionBackend, SessionBackend

__all__ = [
    'HttpChatClient',
    'SocketChannel',
    'ChannelUnavailableError',
    'SessionBackend',
    'PushSessionBackend',
    'RequestSessionBackend',
]
