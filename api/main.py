from __future__ import annotations

import logging
import time
from typing import Optional

import requests
from fastapi import Depends, FastAPI, Query
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from mangum import Mangum
from pydantic import BaseModel, Field

from chaingate.config import Settings, load_settings
from chaingate.etherscan import EtherscanClient
from chaingate.exceptions import ChaingateError
from chaingate.pinata import PinataClient, add_file, get_file
from chaingate.store import PinnedFileStore, TransactionStore, dynamodb_client
from chaingate.token_balance import NodeClient, get_token_balance, infura_endpoint
from chaingate.transactions import DEFAULT_LIMIT, query_transactions, sync_latest_transactions

_LOGGER = logging.getLogger("chaingate.api")
logging.getLogger("chaingate").setLevel(logging.INFO)

_SETTINGS: Optional[Settings] = None
_HTTP_SESSION: Optional[requests.Session] = None
_NODE_CLIENT: Optional[NodeClient] = None


class AddFileRequest(BaseModel):
    data: Optional[str] = Field(
        default=None,
        description="Text content to pin to IPFS.",
    )


def get_settings() -> Settings:
    global _SETTINGS
    if _SETTINGS is None:
        _SETTINGS = load_settings()
    return _SETTINGS


def _http_session() -> requests.Session:
    global _HTTP_SESSION
    if _HTTP_SESSION is None:
        _HTTP_SESSION = requests.Session()
    return _HTTP_SESSION


def get_etherscan_client(settings: Settings = Depends(get_settings)) -> EtherscanClient:
    return EtherscanClient(
        api_key=settings.etherscan_api_key,
        base_url=settings.etherscan_url,
        session=_http_session(),
        timeout=settings.http_timeout,
    )


def get_transaction_store(settings: Settings = Depends(get_settings)) -> TransactionStore:
    client = dynamodb_client(settings.ddb_region, settings.ddb_endpoint)
    return TransactionStore(client, settings.transactions_table)


def get_pinned_file_store(settings: Settings = Depends(get_settings)) -> PinnedFileStore:
    client = dynamodb_client(settings.ddb_region, settings.ddb_endpoint)
    return PinnedFileStore(client, settings.ipfs_table)


def get_pinata_client(settings: Settings = Depends(get_settings)) -> PinataClient:
    return PinataClient(
        jwt=settings.pinata_jwt,
        gateway=settings.pinata_gateway,
        session=_http_session(),
        timeout=settings.http_timeout,
    )


def get_node_client(settings: Settings = Depends(get_settings)) -> NodeClient:
    global _NODE_CLIENT
    if _NODE_CLIENT is None:
        _NODE_CLIENT = NodeClient(
            endpoint=infura_endpoint(settings.infura_api_key),
            session=_http_session(),
            timeout=settings.http_timeout,
        )
    return _NODE_CLIENT


app = FastAPI(
    title="Chaingate API",
    version="0.1",
    root_path=get_settings().root_path,
)
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=False,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.middleware("http")
async def log_gateway_call(request, call_next):
    started = time.perf_counter()
    response = await call_next(request)
    _LOGGER.info(
        "gateway call method=%s path=%s address=%s status=%s elapsed_ms=%d",
        request.method,
        request.url.path,
        request.path_params.get("address") or request.query_params.get("walletAddress"),
        response.status_code,
        (time.perf_counter() - started) * 1000,
    )
    return response


@app.exception_handler(ChaingateError)
async def chaingate_error_handler(request, exc: ChaingateError) -> JSONResponse:
    _LOGGER.info(
        "request failed path=%s status=%s error=%s",
        request.url.path,
        exc.status_code,
        type(exc).__name__,
    )
    return JSONResponse(status_code=exc.status_code, content={"error": exc.message})


@app.exception_handler(RequestValidationError)
async def validation_error_handler(request, exc: RequestValidationError) -> JSONResponse:
    details = "; ".join(
        f"{'.'.join(str(part) for part in error.get('loc', ()))}: {error.get('msg')}"
        for error in exc.errors()
    )
    return JSONResponse(status_code=400, content={"error": details or "Invalid request"})


@app.on_event("startup")
def _log_startup() -> None:
    settings = get_settings()
    _LOGGER.info(
        "startup transactions_table=%s ipfs_table=%s ddb_region=%s etherscan_key=%s",
        settings.transactions_table,
        settings.ipfs_table,
        settings.ddb_region,
        bool(settings.etherscan_api_key),
    )


@app.get("/health")
def health() -> dict:
    return {"status": "ok"}


@app.get("/crypto-transactions/{address}/latest")
def latest_transactions(
    address: str,
    limit: int = Query(default=DEFAULT_LIMIT),
    etherscan: EtherscanClient = Depends(get_etherscan_client),
    store: TransactionStore = Depends(get_transaction_store),
) -> dict:
    records = sync_latest_transactions(address, limit, etherscan, store)
    return {"transactions": [record.to_dict() for record in records]}


@app.get("/crypto-transactions/{address}")
def transactions_for_address(
    address: str,
    date_from: Optional[str] = Query(default=None, alias="dateFrom"),
    date_to: Optional[str] = Query(default=None, alias="dateTo"),
    store: TransactionStore = Depends(get_transaction_store),
) -> dict:
    return {"transactions": query_transactions(address, date_from, date_to, store)}


@app.post("/ipfs/add-file")
def ipfs_add_file(
    req: AddFileRequest,
    pinata: PinataClient = Depends(get_pinata_client),
    files: PinnedFileStore = Depends(get_pinned_file_store),
) -> dict:
    return {"hash": add_file(req.data, pinata, files)}


@app.get("/ipfs/get-file/{file_hash}")
def ipfs_get_file(
    file_hash: str,
    pinata: PinataClient = Depends(get_pinata_client),
    files: PinnedFileStore = Depends(get_pinned_file_store),
) -> dict:
    return {"data": get_file(file_hash, pinata, files)}


@app.get("/token-balance")
def token_balance(
    wallet_address: Optional[str] = Query(default=None, alias="walletAddress"),
    token_contract_address: Optional[str] = Query(default=None, alias="tokenContractAddress"),
    node: NodeClient = Depends(get_node_client),
) -> dict:
    return {"balance": get_token_balance(wallet_address, token_contract_address, node)}


_MANGUM_HANDLER = Mangum(app)


def handler(event, context):
    request_context = event.get("requestContext", {}) if isinstance(event, dict) else {}
    _LOGGER.info(
        "lambda invoke route=%s request_id=%s aws_request_id=%s",
        event.get("routeKey") if isinstance(event, dict) else None,
        request_context.get("requestId") if isinstance(request_context, dict) else None,
        getattr(context, "aws_request_id", None),
    )
    return _MANGUM_HANDLER(event, context)
