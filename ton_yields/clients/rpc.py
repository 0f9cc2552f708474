from __future__ import annotations

import logging
from typing import Any, List, Optional, Sequence

from eth_abi import decode, encode
from eth_utils import function_signature_to_4byte_selector

from ton_yields.clients.errors import RpcError
from ton_yields.http import HttpClient

logger = logging.getLogger(__name__)


async def rpc_call(http: HttpClient, url: str, method: str, params: Optional[list] = None) -> Any:
    payload = {"jsonrpc": "2.0", "id": 1, "method": method, "params": params or []}
    resp = await http.post(url, json=payload)
    data = resp.json()
    if "error" in data:
        raise RpcError(f"RPC error from {url}: {data['error']}")
    return data.get("result")


def encode_call(signature: str, arg_types: Sequence[str] = (), args: Sequence[Any] = ()) -> bytes:
    """Calldata for `signature`, e.g. encode_call("getVaultInfoFull(address)", ["address"], [vault])."""
    selector = function_signature_to_4byte_selector(signature)
    if not arg_types:
        return selector
    return selector + encode(list(arg_types), list(args))


async def eth_call(http: HttpClient, url: str, to: str, calldata: bytes, output_types: Sequence[str]) -> List[Any]:
    result = await rpc_call(http, url, "eth_call", [{"to": to, "data": "0x" + calldata.hex()}, "latest"])
    if not isinstance(result, str) or not result.startswith("0x") or len(result) <= 2:
        raise RpcError(f"Empty eth_call result from {to}")
    return list(decode(list(output_types), bytes.fromhex(result[2:])))
