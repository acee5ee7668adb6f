#!/usr/bin/env python3
"""
Minimal JSON-RPC client for a Bitcoin Core node exposing ``getdefaulttemplate``.

Authentication is either the node's ``.cookie`` file or an explicit
rpcuser/rpcpassword pair.
"""

from __future__ import annotations

import argparse
from pathlib import Path
from typing import Any

import requests

from run_cv_common import env_default, env_timeout_s


USER_AGENT = "ctv-vectors/0.1"


class JSONRPCException(Exception):
    def __init__(self, rpc_error: dict[str, Any]) -> None:
        super().__init__(f"msg: {rpc_error.get('message')!r}  code: {rpc_error.get('code')!r}")
        self.error = rpc_error


def read_cookie(path: Path) -> tuple[str, str]:
    raw = path.read_text(encoding="utf-8").strip()
    if ":" not in raw:
        raise ValueError(f"malformed cookie file: {path}")
    user, password = raw.split(":", 1)
    return user, password


class RpcClient:
    def __init__(
        self,
        url: str,
        *,
        cookie_file: Path | None = None,
        user: str | None = None,
        password: str | None = None,
        timeout: float | None = None,
        session: requests.Session | None = None,
    ) -> None:
        if cookie_file is not None:
            user, password = read_cookie(cookie_file)
        if user is None or password is None:
            raise ValueError("rpc auth requires a cookie file or user and password")

        self.url = url
        self.timeout = timeout if timeout is not None else env_timeout_s()
        self._id_count = 0
        self._session = session or requests.Session()
        self._session.auth = (user, password)
        self._session.headers.update(
            {"User-Agent": USER_AGENT, "Content-Type": "application/json"}
        )

    def call(self, method: str, *params: Any) -> Any:
        self._id_count += 1
        payload = {
            "jsonrpc": "1.0",
            "id": self._id_count,
            "method": method,
            "params": list(params),
        }
        try:
            resp = self._session.post(self.url, json=payload, timeout=self.timeout)
        except requests.RequestException as e:
            raise JSONRPCException({"code": -342, "message": f"transport error: {e}"}) from e

        # Core answers RPC-level errors with HTTP 500 and a JSON body.
        try:
            body = resp.json()
        except ValueError:
            raise JSONRPCException(
                {"code": -342, "message": f"non-JSON HTTP response (status={resp.status_code})"}
            ) from None
        if not isinstance(body, dict):
            raise JSONRPCException({"code": -343, "message": "malformed JSON-RPC response"})

        if body.get("error") is not None:
            err = body["error"]
            raise JSONRPCException(err if isinstance(err, dict) else {"code": None, "message": str(err)})
        if "result" not in body:
            raise JSONRPCException({"code": -343, "message": "missing JSON-RPC result"})
        return body["result"]

    def get_default_template(self, hex_tx: str, input_index: int, witness: bool) -> str:
        result = self.call("getdefaulttemplate", hex_tx, input_index, witness)
        if not isinstance(result, str):
            raise JSONRPCException(
                {"code": -343, "message": f"getdefaulttemplate returned {type(result).__name__}"}
            )
        return result

    def close(self) -> None:
        self._session.close()


def add_rpc_args(parser: argparse.ArgumentParser, *, short: bool = True) -> None:
    url_flags = ["-u", "--rpc-url"] if short else ["--rpc-url"]
    cookie_flags = ["-c", "--cookie-file"] if short else ["--cookie-file"]
    parser.add_argument(
        *url_flags,
        dest="rpc_url",
        default=env_default("CTV_RPC_URL"),
        help="JSON-RPC URL of the oracle node (env: CTV_RPC_URL)",
    )
    parser.add_argument(
        *cookie_flags,
        dest="cookie_file",
        default=env_default("CTV_RPC_COOKIE"),
        help="Path to the node's .cookie file (env: CTV_RPC_COOKIE)",
    )
    parser.add_argument("--rpc-user", default=None, help="rpcuser (instead of a cookie file)")
    parser.add_argument("--rpc-password", default=None, help="rpcpassword (instead of a cookie file)")


def client_from_args(args: argparse.Namespace) -> RpcClient:
    if not args.rpc_url:
        raise ValueError("missing --rpc-url")
    cookie = Path(args.cookie_file) if args.cookie_file else None
    return RpcClient(
        args.rpc_url,
        cookie_file=cookie,
        user=args.rpc_user,
        password=args.rpc_password,
    )
