import base64
import binascii
import json
import logging
import os

import firebase_admin
import requests
from dotenv import load_dotenv
from firebase_admin import credentials, firestore

load_dotenv()

logger = logging.getLogger(__name__)


# -------- QIKINK --------
QIK_CLIENT_ID = os.environ.get("QIK_CLIENT_ID")
QIK_CLIENT_SECRET = os.environ.get("QIK_CLIENT_SECRET")
QIK_TOKEN_URL = os.environ.get("QIK_TOKEN_URL", "https://sandbox.qikink.com/api/token")
QIK_PRODUCTS_URL = os.environ.get("QIK_PRODUCTS_URL", "https://sandbox.qikink.com/api/products")

TOKEN_TIMEOUT = 15
PRODUCTS_TIMEOUT = 30


# -------- FIREBASE --------
FIREBASE_SERVICE_ACCOUNT = os.environ.get("FIREBASE_SERVICE_ACCOUNT")


class CredentialError(Exception):
    """FIREBASE_SERVICE_ACCOUNT is set but holds neither JSON nor base64 JSON."""


class QikinkError(Exception):
    pass


class QikinkAuthError(QikinkError):
    pass


class QikinkResponseError(QikinkError):
    pass


def warn_if_unconfigured():
    if not QIK_CLIENT_ID or not QIK_CLIENT_SECRET:
        logger.warning("QIK_CLIENT_ID / QIK_CLIENT_SECRET not set, /sync-qikink will fail to authenticate")


def load_service_account(raw=FIREBASE_SERVICE_ACCOUNT):
    """
    Parse the inline service account.

    Accepts the credential JSON itself or the same JSON base64-encoded.
    Returns None when nothing is configured so the caller can fall back
    to application default credentials.
    """
    if not raw or not raw.strip():
        return None

    raw = raw.strip()
    try:
        service_account = json.loads(raw)
    except ValueError:
        try:
            decoded = base64.b64decode(raw, validate=True).decode("utf-8")
            service_account = json.loads(decoded)
        except (binascii.Error, UnicodeDecodeError, ValueError) as e:
            raise CredentialError(
                "FIREBASE_SERVICE_ACCOUNT is neither valid JSON nor base64-encoded JSON"
            ) from e

    if not isinstance(service_account, dict):
        raise CredentialError("FIREBASE_SERVICE_ACCOUNT must be a JSON object")

    return service_account


def create_firestore_client(raw_service_account=FIREBASE_SERVICE_ACCOUNT):
    """Initialize the default firebase app (once) and return a Firestore client."""
    try:
        app = firebase_admin.get_app()
    except ValueError:
        service_account = load_service_account(raw_service_account)
        if service_account is not None:
            cred = credentials.Certificate(service_account)
            logger.info("Firebase initialized from FIREBASE_SERVICE_ACCOUNT")
        else:
            cred = credentials.ApplicationDefault()
            logger.info("Firebase initialized from application default credentials")
        app = firebase_admin.initialize_app(cred)

    return firestore.client(app)


# Exchange client id / secret for an access token
def fetch_qikink_token(client_id, client_secret, token_url=QIK_TOKEN_URL):
    try:
        res = requests.post(
            token_url,
            data={"ClientId": client_id, "client_secret": client_secret},
            timeout=TOKEN_TIMEOUT,
        )
        res.raise_for_status()
        body = res.json()
    except requests.RequestException as e:
        raise QikinkAuthError(f"Qikink token request failed: {e}") from e

    if not isinstance(body, dict):
        raise QikinkAuthError("Qikink token response was not a JSON object")

    nested = body.get("data") if isinstance(body.get("data"), dict) else {}
    token = body.get("access_token") or body.get("token") or nested.get("token")

    if not token:
        raise QikinkAuthError("No access token in Qikink token response")

    logger.info("Obtained Qikink access token")
    return token


# Fetch the product catalog (single page)
def fetch_qikink_products(token, client_id=QIK_CLIENT_ID, products_url=QIK_PRODUCTS_URL):
    headers = {
        "ClientId": client_id or "",
        "Accesstoken": token,
    }

    res = requests.get(products_url, headers=headers, timeout=PRODUCTS_TIMEOUT)
    res.raise_for_status()
    body = res.json()

    if isinstance(body, dict):
        items = body.get("data")
        if items is None:
            items = body.get("products")
    else:
        items = body

    if not isinstance(items, list):
        raise QikinkResponseError("Unexpected Qikink products response: expected a list of products")

    return items
