"""JSON-RPC session layer."""

from toolrelay.rpc.session import RpcSession

__all__ = ["RpcSession"]
