import logging

import requests
from fastapi import APIRouter, Depends, Request
from fastapi.responses import JSONResponse, PlainTextResponse

import services
from schemas import SyncError, SyncResult
from services import QikinkError, fetch_qikink_products, fetch_qikink_token
from utils import map_qikink_product, sanitize_collection_name, upsert_product

logger = logging.getLogger(__name__)

router = APIRouter()


def get_db(request: Request):
    return request.app.state.db


@router.get("/", response_class=PlainTextResponse)
def read_root():
    return "Qikink → Firestore sync service is running"


@router.post(
    "/sync-qikink",
    response_model=SyncResult,
    responses={500: {"model": SyncError}},
)
def sync_qikink_products(db=Depends(get_db)):
    """
    Pull the Qikink catalog and upsert every product into Firestore,
    one collection per product type.
    """

    # 1. Authenticate + fetch. Either failing aborts the whole sync.
    try:
        token = fetch_qikink_token(
            services.QIK_CLIENT_ID,
            services.QIK_CLIENT_SECRET,
            services.QIK_TOKEN_URL,
        )
        products = fetch_qikink_products(
            token,
            services.QIK_CLIENT_ID,
            services.QIK_PRODUCTS_URL,
        )
    except (QikinkError, requests.RequestException) as e:
        logger.error("Qikink sync aborted: %s", e)
        return JSONResponse(
            status_code=500,
            content=SyncError(error=str(e)).model_dump(),
        )

    logger.info("Fetched %d products from Qikink", len(products))

    # 2. Map & store, one item at a time
    success = 0
    failed = 0

    for p in products:
        product = None
        try:
            product = map_qikink_product(p)
            upsert_product(db, product)
            success += 1
        except Exception:
            failed += 1
            logger.exception(
                "Failed to upsert product %s into %s",
                product.productId if product else "<unmapped>",
                sanitize_collection_name(product.type) if product else "<unknown>",
            )

    logger.info("Qikink sync finished: total=%d success=%d failed=%d", len(products), success, failed)

    return SyncResult(
        message="Qikink products synced to Firestore",
        total=len(products),
        success=success,
        failed=failed,
    )
