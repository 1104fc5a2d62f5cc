"""
Bulk product import/export through Excel workbooks.

Workbooks use one header row followed by one product per row. Parsing is
lenient (bad numbers become 0) and drops rows with no name or no positive
price; ``validate_products_data`` then reports what still needs fixing,
row by row, before anything reaches the catalog.
"""

import logging
from decimal import Decimal, InvalidOperation
from io import BytesIO
from typing import Any, BinaryIO, Dict, Iterable, List, Union
from xml.etree.ElementTree import ParseError
from zipfile import BadZipFile

from openpyxl import Workbook, load_workbook
from openpyxl.utils.exceptions import InvalidFileException
from pydantic import BaseModel, Field

from .core import ProductCreateInput
from .models import Product

logger = logging.getLogger(__name__)

COL_NAME = "Product Name"
COL_PRICE = "Price"
COL_DESCRIPTION = "Description"
COL_CATEGORY = "Category"
COL_STOCK = "Stock Quantity"
COL_FEATURED = "Featured (true/false)"
COL_IMAGES = "Images (URLs separated by comma)"

EXCEL_HEADERS = [COL_NAME, COL_PRICE, COL_DESCRIPTION, COL_CATEGORY, COL_STOCK, COL_FEATURED, COL_IMAGES]


class ExcelImportError(Exception):
    pass


# openpyxl surfaces broken archives and malformed XML parts as any of these
_READ_ERRORS = (InvalidFileException, BadZipFile, KeyError, OSError, ParseError, ValueError, TypeError)


class ImportRow(BaseModel):
    name: str = ""
    price: Decimal = Decimal("0")
    description: str = ""
    category: str = ""
    stock: int = 0
    featured: bool = False
    images: List[str] = Field(default_factory=list)

    def to_create_input(self) -> ProductCreateInput:
        return ProductCreateInput(
            name=self.name,
            price=self.price,
            description=self.description,
            category=self.category,
            stock=self.stock,
            featured=self.featured,
            images=self.images,
        )


class RowError(BaseModel):
    row: int
    message: str


class ValidationReport(BaseModel):
    valid: bool
    errors: List[RowError]


# ---------------------------
# Cell coercion
# ---------------------------
def _to_decimal(value: Any) -> Decimal:
    if value is None or isinstance(value, bool):
        return Decimal("0")
    try:
        result = Decimal(str(value).strip())
    except InvalidOperation:
        return Decimal("0")
    return result if result.is_finite() else Decimal("0")


def _to_int(value: Any) -> int:
    if value is None or isinstance(value, bool):
        return 0
    try:
        if isinstance(value, (int, float, Decimal)):
            return int(value)
        return int(float(str(value).strip()))
    except (ValueError, OverflowError):
        return 0


def _to_text(value: Any) -> str:
    return "" if value is None else str(value).strip()


def _row_to_import(record: Dict[str, Any]) -> ImportRow:
    featured = record.get(COL_FEATURED)
    images = _to_text(record.get(COL_IMAGES))
    return ImportRow(
        name=_to_text(record.get(COL_NAME)),
        price=_to_decimal(record.get(COL_PRICE)),
        description=_to_text(record.get(COL_DESCRIPTION)),
        category=_to_text(record.get(COL_CATEGORY)),
        stock=_to_int(record.get(COL_STOCK)),
        featured=featured is True or _to_text(featured).lower() == "true",
        images=[url.strip() for url in images.split(",")] if images else [],
    )


# ---------------------------
# Import
# ---------------------------
def parse_excel_to_products(source: Union[bytes, str, BinaryIO]) -> List[ImportRow]:
    if isinstance(source, bytes):
        source = BytesIO(source)
    try:
        wb = load_workbook(source, read_only=True, data_only=True)
    except _READ_ERRORS as e:
        raise ExcelImportError(f"Failed to read file: {e}") from e

    try:
        ws = wb.worksheets[0]
        rows = ws.iter_rows(values_only=True)
        header = next(rows, None)
        if header is None:
            return []
        keys = [_to_text(h) for h in header]

        products: List[ImportRow] = []
        for values in rows:
            if values is None or all(v is None or v == "" for v in values):
                continue
            item = _row_to_import(dict(zip(keys, values)))
            if item.name and item.price > 0:
                products.append(item)
    except _READ_ERRORS as e:
        # read-only sheets parse their XML lazily while rows are read
        raise ExcelImportError(f"Failed to read file: {e}") from e
    finally:
        wb.close()

    logger.info("parsed %d product rows from workbook", len(products))
    return products


def validate_products_data(products: Iterable[ImportRow]) -> ValidationReport:
    errors: List[RowError] = []

    for index, product in enumerate(products, start=1):
        if not product.name:
            errors.append(RowError(row=index, message="Product name is required"))

        if product.price <= 0:
            errors.append(RowError(row=index, message="Price must be greater than 0"))

        if not product.category:
            errors.append(RowError(row=index, message="Category is required"))

        if product.stock < 0:
            errors.append(RowError(row=index, message="Stock must be a non-negative number"))

        for pos, url in enumerate(product.images, start=1):
            if not url or not url.startswith(("http://", "https://")):
                errors.append(RowError(row=index, message=f"Invalid image URL at position {pos}"))

    return ValidationReport(valid=not errors, errors=errors)


# ---------------------------
# Export
# ---------------------------
def _workbook_bytes(title: str, rows: Iterable[List[Any]]) -> bytes:
    wb = Workbook()
    ws = wb.active
    ws.title = title
    ws.append(EXCEL_HEADERS)
    for row in rows:
        ws.append(row)
    buf = BytesIO()
    wb.save(buf)
    return buf.getvalue()


def export_products_to_excel(products: Iterable[Product]) -> bytes:
    rows = [
        [
            p.name,
            p.price,
            p.description,
            p.category,
            p.stock,
            "true" if p.featured else "false",
            ",".join(p.images),
        ]
        for p in products
    ]
    return _workbook_bytes("Products", rows)


def export_empty_template() -> bytes:
    rows = [
        [
            "Example Product",
            Decimal("99.99"),
            "Product description goes here",
            "Category Name",
            10,
            "false",
            "https://example.com/image1.jpg,https://example.com/image2.jpg",
        ],
        ["", "", "", "", "", "", ""],
    ]
    return _workbook_bytes("Product Template", rows)
