"""Remote file function endpoints.

``POST /invoke-lambda`` is the raw pass-through (envelope returned as is).
The ``/files/...`` endpoints decode the envelope and translate remote
errors: missing token -> 401, ``success: false`` -> 502.
"""

from __future__ import annotations

from botocore.exceptions import BotoCoreError, ClientError
from fastapi import APIRouter, HTTPException, Query, status
from fastapi.responses import JSONResponse
from loguru import logger

from loanstream.console.deps import BearerToken, FileSvc
from loanstream.console.errors import MissingCredentialsError, RemoteFunctionError
from loanstream.console.models.api import FileContent, InvokeLambdaRequest, StoredFile
from loanstream.console.models.enums import FileArea
from loanstream.console.routers.agent import error_response
from loanstream.console.services.files import function_name_from_arn

router = APIRouter(tags=["files"])


@router.post("/invoke-lambda", response_model=None)
async def invoke_lambda(body: InvokeLambdaRequest, files: FileSvc) -> JSONResponse:
    """Invoke one tool of the file function and return its envelope."""
    if not body.tool_name or not body.bearer_token:
        return error_response(status.HTTP_400_BAD_REQUEST, "Missing required parameters: tool_name, bearer_token")
    if body.lambda_arn is not None:
        try:
            function_name_from_arn(body.lambda_arn)
        except ValueError:
            return error_response(status.HTTP_400_BAD_REQUEST, "Invalid Lambda ARN format")

    try:
        envelope = await files.invoke(body.tool_name, body.arguments, function_arn=body.lambda_arn)
    except (RemoteFunctionError, BotoCoreError, ClientError) as e:
        logger.warning("File function invocation failed ({}): {}", body.tool_name, e)
        return error_response(status.HTTP_500_INTERNAL_SERVER_ERROR, "Failed to invoke Lambda function", str(e))
    return JSONResponse(envelope.model_dump(mode="json"))


@router.get("/files/{area}/list", response_model=list[StoredFile])
async def list_files(area: FileArea, files: FileSvc, token: BearerToken) -> list[StoredFile]:
    try:
        return await files.list_files(area, token)
    except MissingCredentialsError as e:
        raise HTTPException(status.HTTP_401_UNAUTHORIZED, detail=str(e)) from None
    except (RemoteFunctionError, BotoCoreError, ClientError) as e:
        raise HTTPException(status.HTTP_502_BAD_GATEWAY, detail=str(e)) from None


@router.get("/files/read", response_model=FileContent)
async def read_file(
    files: FileSvc,
    token: BearerToken,
    key: str = Query(..., description="Full object path as returned by the list endpoint."),
) -> FileContent:
    try:
        content = await files.read_file(key, token)
    except MissingCredentialsError as e:
        raise HTTPException(status.HTTP_401_UNAUTHORIZED, detail=str(e)) from None
    except (RemoteFunctionError, BotoCoreError, ClientError) as e:
        raise HTTPException(status.HTTP_502_BAD_GATEWAY, detail=str(e)) from None
    return FileContent(key=key, content=content)
