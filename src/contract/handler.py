from __future__ import annotations

import logging
import os
from typing import Any, Dict, Iterable, Optional

import boto3
from botocore.exceptions import ClientError

from common.cipher import RecordCipher
from common.errors import AlreadyExists, EscrowError
from escrow.context import BlockInfo, Deps, Env, MessageInfo
from escrow.lifecycle import get_key_details, instantiate_config, retrieve_key, store_key
from state.s3_store import S3Storage
from state.storage import transaction
from state.store import ConfigStore

from .msg import ExecuteMsg, HostBlock, InstantiateMsg, QueryMsg, Response, RetrieveKey, StoreKey


logger = logging.getLogger(__name__)


# Environment configuration for the serverless host
ENV_STATE_BUCKET = "STATE_BUCKET"
ENV_STATE_PREFIX = "STATE_PREFIX"  # optional; defaults to "escrow/"
ENV_PARAM_PREFIX = "PARAM_PREFIX"

# Fallbacks (same names as the standalone S3 storage)
FALLBACK_ENV_STATE_BUCKET = "ESCROW_STATE_BUCKET"
FALLBACK_ENV_STATE_PREFIX = "ESCROW_STATE_PREFIX"
FALLBACK_ENV_PARAM_PREFIX = "ESCROW_PARAM_PREFIX"


# -------- Entry points --------
def instantiate(deps: Deps, env: Env, info: MessageInfo, msg: InstantiateMsg) -> Response:
    if ConfigStore(deps.storage).exists():
        raise AlreadyExists("Contract already instantiated")
    config = instantiate_config(deps, info, msg.broadcast)
    return Response().add_attribute("owner", config.creator).add_attribute("action", "instantiate")


def execute(deps: Deps, env: Env, info: MessageInfo, msg: ExecuteMsg) -> Response:
    variant = msg.variant
    if isinstance(variant, StoreKey):
        key_id = store_key(deps, env, info, variant.key, variant.recipient)
        return Response().add_attribute("action", "store_key").add_attribute("key_id", key_id)
    if isinstance(variant, RetrieveKey):
        decrypted = retrieve_key(deps, variant.key)
        return Response().add_attribute("action", "retrieve_key").add_attribute("key", decrypted)
    raise ValueError(f"Unsupported execute variant: {type(variant).__name__}")


def query(deps: Deps, env: Env, msg: QueryMsg) -> bytes:
    """Return the JSON-serialized `KeyDetails` for the requested key_id."""
    details = get_key_details(deps, msg.variant.key)
    return details.model_dump_json().encode("utf-8")


def query_attributes(deps: Deps, env: Env, msg: QueryMsg) -> Response:
    """Deprecated flat-attribute rendering of `GetKeyDetails`.

    Kept for callers of the legacy shape, which reports the broadcast string
    under the `encrypted_data` attribute. The Lambda adapter exposes it as
    `entry: "query_attributes"`. Use `query` instead.
    """
    key_id = msg.variant.key
    details = get_key_details(deps, key_id)
    return (
        Response()
        .add_attribute("action", "get_key_details")
        .add_attribute("key_id", key_id)
        .add_attribute("creator", details.creator)
        .add_attribute("recipient", details.recipient)
        .add_attribute("retrieved", str(details.retrieved).lower())
        .add_attribute("timestamp", details.timestamp)
        .add_attribute("encrypted_data", details.broadcast)
    )


# -------- Serverless host --------
def _getenv(name: str, default: Optional[str] = None) -> Optional[str]:
    val = os.environ.get(name)
    return val if val not in (None, "") else default


def _require(v: Optional[str], what: str) -> str:
    if not v:
        raise RuntimeError(f"Missing required configuration: {what}")
    return v


def _load_ssm_params(prefix: str, names: Iterable[str]) -> Dict[str, Optional[str]]:
    ssm = boto3.client("ssm")
    out: Dict[str, Optional[str]] = {k: None for k in names}
    for name in names:
        full = f"{prefix}{name}"
        try:
            resp = ssm.get_parameter(Name=full, WithDecryption=True)
        except ClientError as e:
            # Leave as None if parameter missing or access denied
            code = e.response.get("Error", {}).get("Code")
            if code in ("ParameterNotFound", "AccessDeniedException"):
                out[name] = None
                continue
            raise
        val = resp.get("Parameter", {}).get("Value")
        out[name] = val if isinstance(val, str) and val != "" else None
    return out


def _parse_env(event: Dict[str, Any], *, require_height: bool = True) -> Env:
    raw = event.get("block")
    if raw is None and not require_height:
        return Env(block=BlockInfo(height=0))
    block = HostBlock.model_validate(raw if raw is not None else {})
    return Env(block=BlockInfo(height=block.height, time=block.time))


def _dispatch(deps: Deps, event: Dict[str, Any]) -> Dict[str, Any]:
    entry = event.get("entry")
    msg = event.get("msg") or {}
    env = _parse_env(event, require_height=entry not in ("query", "query_attributes"))

    if entry == "query":
        payload = query(deps, env, QueryMsg.model_validate(msg))
        return {"ok": True, "data": payload.decode("utf-8")}
    if entry == "query_attributes":
        res = query_attributes(deps, env, QueryMsg.model_validate(msg))
        return {"ok": True, **res.to_dict()}

    sender = event.get("sender")
    if not isinstance(sender, str) or not sender:
        raise ValueError("event.sender is required")
    info = MessageInfo(sender=sender)

    if entry == "instantiate":
        res = instantiate(deps, env, info, InstantiateMsg.model_validate(msg))
    elif entry == "execute":
        res = execute(deps, env, info, ExecuteMsg.model_validate(msg))
    else:
        raise ValueError(f"Unknown entry: {entry!r}")
    return {"ok": True, **res.to_dict()}


def run_once(event: Dict[str, Any]) -> Dict[str, Any]:
    """
    Handle one host call against S3-backed contract state.

    - Resolves state bucket/prefix and SSM prefix from env, with fallbacks.
    - Loads the cipher key from SSM (`cipher_key` under the prefix).
    - Runs the entry inside a storage transaction: writes reach S3 only if
      the call succeeds.

    Returns: {"ok": True, ...} on success, {"ok": False, "error": str} when
    the call fails with an escrow or validation error.
    """
    bucket = _getenv(ENV_STATE_BUCKET) or _getenv(FALLBACK_ENV_STATE_BUCKET)
    prefix = _getenv(ENV_STATE_PREFIX) or _getenv(FALLBACK_ENV_STATE_PREFIX, "escrow/")
    param_prefix = _getenv(ENV_PARAM_PREFIX) or _getenv(FALLBACK_ENV_PARAM_PREFIX)

    bucket = _require(bucket, ENV_STATE_BUCKET)
    param_prefix = _require(param_prefix, ENV_PARAM_PREFIX)

    params = _load_ssm_params(param_prefix, ["cipher_key"])
    cipher_key = _require(params.get("cipher_key"), f"{param_prefix}cipher_key")
    cipher = RecordCipher.from_encoded_key(cipher_key)

    storage = S3Storage(bucket=bucket, prefix=prefix)
    try:
        with transaction(storage) as tx:
            return _dispatch(Deps(storage=tx, cipher=cipher), event)
    except (EscrowError, ValueError) as e:
        logger.warning("Call failed: entry=%s error=%s", event.get("entry"), e)
        return {"ok": False, "error": str(e)}


def lambda_handler(event: Dict[str, Any], context: Any) -> Dict[str, Any]:
    """AWS Lambda entry for escrow calls.

    Event:
    - entry: "instantiate" | "execute" | "query" | "query_attributes" (deprecated)
    - sender: caller account (not needed for query)
    - block: {"height": int, "time": int nanoseconds}; strict non-negative ints,
      optional for queries
    - msg: tagged message payload

    Environment:
    - STATE_BUCKET, STATE_PREFIX (default: escrow/), PARAM_PREFIX
    - Fallbacks: ESCROW_STATE_BUCKET, ESCROW_STATE_PREFIX, ESCROW_PARAM_PREFIX
    - SSM under PARAM_PREFIX must provide: cipher_key
    """
    return run_once(event)
