from .http import RpcClient
from .ws import WsClient

__all__ = ["RpcClient", "WsClient"]
