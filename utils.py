import math
import re
import time

from firebase_admin import firestore
from google.api_core.exceptions import AlreadyExists

from schemas import QikinkProduct


DEFAULT_TYPE = "uncategorized"


def _field(key):
    return lambda p: p.get(key)


def _first_image(key):
    def accessor(p):
        images = p.get(key)
        if isinstance(images, list) and images:
            return _image_url(images[0])
        return None
    return accessor


def _image_url(value):
    if isinstance(value, dict):
        return value.get("src") or value.get("url")
    return value


# Source lookups per normalized field, highest priority first
PRODUCT_ID_SOURCES = [_field(k) for k in ("id", "product_id", "productId", "sku", "SKU", "Sku")]
NAME_SOURCES = [_field(k) for k in ("name", "product_name", "Product", "Product Name", "title")]
DESIGN_SOURCES = [_field(k) for k in ("design", "Design", "design_name", "design_code")]
SKU_SOURCES = [_field(k) for k in ("sku", "SKU", "Sku", "product_sku")]
TYPE_SOURCES = [_field(k) for k in ("product_type", "type", "Product Type", "productType", "category")]
PRICE_SOURCES = [_field(k) for k in ("price", "Product Price (Starts from)", "price_start", "price_from")]
IMAGE_SOURCES = [
    _first_image("images"),
    _first_image("Images"),
    _field("image"),
    _field("Image"),
    _field("image_url"),
    _field("thumbnail"),
]


def _is_empty(value):
    if value is None:
        return True
    if isinstance(value, str):
        return not value.strip()
    if isinstance(value, (list, dict)):
        return not value
    return False


def first_present(p: dict, accessors):
    for accessor in accessors:
        value = accessor(p)
        if not _is_empty(value):
            return value
    return None


def _text(value, default=""):
    if _is_empty(value):
        return default
    return str(value).strip()


def parse_price(value) -> float:
    """Numeric coercion; anything unparsable, negative or non-finite is 0."""
    if isinstance(value, bool) or value is None:
        return 0.0
    if isinstance(value, str):
        value = value.strip()
    try:
        price = float(value)
    except (TypeError, ValueError):
        return 0.0
    if not math.isfinite(price) or price < 0:
        return 0.0
    return price


# Convert a raw Qikink product → our product format
def map_qikink_product(p) -> QikinkProduct:
    p = dict(p) if isinstance(p, dict) else {}

    # last resort id is the wall clock, so id-less products can overwrite each other
    product_id = _text(first_present(p, PRODUCT_ID_SOURCES)) or str(int(time.time() * 1000))

    return QikinkProduct(
        productId=product_id,
        name=_text(first_present(p, NAME_SOURCES)),
        design=_text(first_present(p, DESIGN_SOURCES)),
        sku=_text(first_present(p, SKU_SOURCES)),
        type=_text(first_present(p, TYPE_SOURCES), DEFAULT_TYPE),
        price=parse_price(first_present(p, PRICE_SOURCES)),
        image=_text(_image_url(first_present(p, IMAGE_SOURCES))),
        raw=p,
    )


_UNSAFE_PATH_CHARS = re.compile(r"[/#$\[\]]")


def sanitize_collection_name(product_type) -> str:
    name = _UNSAFE_PATH_CHARS.sub("-", str(product_type or "").strip())
    if name.startswith("."):
        name = "-" + name[1:]
    return name or DEFAULT_TYPE


# insert or merge product into the collection for its type
def upsert_product(db, product: QikinkProduct):
    collection = sanitize_collection_name(product.type)

    data = product.model_dump()
    data["updatedAt"] = firestore.SERVER_TIMESTAMP

    doc_ref = db.collection(collection).document(product.productId)

    # createdAt is only ever sent on the first write
    try:
        doc_ref.create({**data, "createdAt": firestore.SERVER_TIMESTAMP})
    except AlreadyExists:
        doc_ref.set(data, merge=True)

    return doc_ref
