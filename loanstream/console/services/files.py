"""Pipeline file access through the remote file function.

The pipeline keeps application documents under ``input/`` and results under
``output/`` in an object store.  The console never talks to the store
directly; it invokes a Lambda function that exposes two tools:

- ``list_s3_files`` with ``{prefix, max_keys}``
- ``read_s3_file`` with ``{file_path}``

The function's response is double-encoded: the invocation payload is
``{statusCode, body}`` and ``body`` is itself a JSON string::

    {"statusCode": 200, "body": "{\\"success\\": true, \\"files\\": [...]}"}

Uses ``anyio.to_thread.run_sync`` to run boto3 calls in the thread pool.
"""

from __future__ import annotations

import json
from functools import partial
from typing import Any

import boto3
from anyio import to_thread
from loguru import logger

from loanstream.console.errors import MissingCredentialsError, RemoteFunctionError
from loanstream.console.models.api import LambdaEnvelope, StoredFile
from loanstream.console.models.enums import FileArea

LIST_TOOL = "list_s3_files"
READ_TOOL = "read_s3_file"
DEFAULT_MAX_KEYS = 100


def _create_lambda_client(
    region: str,
    access_key: str | None = None,
    secret_key: str | None = None,
) -> Any:
    """Create a boto3 Lambda client.

    Explicit keys are optional; without them boto3 uses its default
    credential chain.
    """
    return boto3.client(
        "lambda",
        region_name=region,
        aws_access_key_id=access_key,
        aws_secret_access_key=secret_key,
    )


def function_name_from_arn(function_arn: str) -> str:
    """Last ARN segment.  Raises ``ValueError`` for an ARN without one."""
    name = function_arn.split(":")[-1] if function_arn else ""
    if not name:
        msg = "Invalid Lambda ARN format"
        raise ValueError(msg)
    return name


def build_tool_payload(tool_name: str, arguments: dict[str, Any]) -> dict[str, Any]:
    """Invocation payload: the tool call, with arguments also at root level (Gateway format)."""
    return {"tool_name": tool_name, "arguments": arguments, **arguments}


def decode_tool_result(result: Any) -> dict[str, Any] | None:
    """Decode the JSON-string ``body`` of a function result.

    Returns None when there is no decodable body.  Raises
    ``RemoteFunctionError`` when the body reports ``success: false`` with an
    ``error`` message.
    """
    if not isinstance(result, dict):
        return None
    body = result.get("body")
    if isinstance(body, str):
        try:
            body = json.loads(body)
        except json.JSONDecodeError:
            logger.debug("File function returned a non-JSON body")
            return None
    if not isinstance(body, dict):
        return None
    if not body.get("success") and body.get("error"):
        raise RemoteFunctionError(str(body["error"]))
    return body


def _to_stored_file(entry: dict[str, Any]) -> StoredFile:
    key = entry.get("full_path") or entry.get("key") or ""
    return StoredFile(
        key=key,
        last_modified=entry.get("last_modified"),
        size=entry.get("size") or 0,
        display_name=entry.get("filename") or key.rsplit("/", 1)[-1],
    )


class FileService:
    """Lists and reads pipeline files via the remote file function."""

    def __init__(
        self,
        function_arn: str | None,
        *,
        region: str,
        access_key: str | None = None,
        secret_key: str | None = None,
        client: Any = None,
    ) -> None:
        self.function_arn = function_arn
        self._client = client or _create_lambda_client(region, access_key, secret_key)

    # -- Raw invocation --------------------------------------------------------

    async def invoke(
        self,
        tool_name: str,
        arguments: dict[str, Any],
        *,
        function_arn: str | None = None,
    ) -> LambdaEnvelope:
        """Invoke one tool and return ``{statusCode: 200, body: <result>}``."""
        arn = function_arn or self.function_arn
        if not arn:
            msg = "File function ARN is not configured (LOANSTREAM_LAMBDA_ARN)."
            raise RemoteFunctionError(msg)
        function_name = function_name_from_arn(arn)
        payload = build_tool_payload(tool_name, arguments)

        result = await to_thread.run_sync(partial(self._invoke_sync, function_name, payload))
        return LambdaEnvelope(statusCode=200, body=result)

    def _invoke_sync(self, function_name: str, payload: dict[str, Any]) -> Any:
        """Invoke and read the payload stream in the same worker thread."""
        logger.debug("Invoking {} ({})", function_name, payload.get("tool_name"))
        resp = self._client.invoke(
            FunctionName=function_name,
            Payload=json.dumps(payload).encode("utf-8"),
            InvocationType="RequestResponse",
        )
        status_code = resp.get("StatusCode")
        if status_code != 200:
            msg = f"Lambda invocation failed with status: {status_code}"
            raise RemoteFunctionError(msg)

        raw = resp["Payload"].read().decode("utf-8")
        if resp.get("FunctionError"):
            msg = f"Lambda function error: {raw}"
            raise RemoteFunctionError(msg)
        try:
            return json.loads(raw)
        except json.JSONDecodeError:
            msg = "Lambda returned a non-JSON payload"
            raise RemoteFunctionError(msg) from None

    # -- Files -----------------------------------------------------------------

    async def list_files(
        self,
        area: FileArea | str,
        bearer_token: str | None,
        *,
        max_keys: int = DEFAULT_MAX_KEYS,
    ) -> list[StoredFile]:
        """List files under *area*.  Empty list when the function returns none."""
        _require_token(bearer_token)
        envelope = await self.invoke(LIST_TOOL, {"prefix": str(FileArea(area)), "max_keys": max_keys})

        result = envelope.body
        data = decode_tool_result(result)
        if data is None or result.get("statusCode") != 200:
            return []
        if not data.get("success") or not isinstance(data.get("files"), list):
            return []
        return [_to_stored_file(entry) for entry in data["files"] if isinstance(entry, dict)]

    async def list_input_files(self, bearer_token: str | None) -> list[StoredFile]:
        return await self.list_files(FileArea.INPUT, bearer_token)

    async def list_output_files(self, bearer_token: str | None) -> list[StoredFile]:
        return await self.list_files(FileArea.OUTPUT, bearer_token)

    async def read_file(self, key: str, bearer_token: str | None) -> str:
        """Return the text content of *key* (the full object path)."""
        _require_token(bearer_token)
        envelope = await self.invoke(READ_TOOL, {"file_path": key})

        result = envelope.body
        data = decode_tool_result(result)
        if data is not None and result.get("statusCode") == 200 and data.get("success"):
            content = data.get("content")
            if isinstance(content, str):
                return content
        error = data.get("error") if data else None
        raise RemoteFunctionError(error or "Failed to read file")


def _require_token(bearer_token: str | None) -> None:
    if not bearer_token:
        msg = "No authentication token"
        raise MissingCredentialsError(msg)
