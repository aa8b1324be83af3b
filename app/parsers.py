"""
Spreadsheet adapter for catalog import and export.

Reading turns uploaded bytes (CSV, XLSX, XLSM) into an ordered list of
header-keyed string rows. Blank rows in the middle of a sheet are kept so
row numbers line up with what the user sees. Writing produces the import
template and the catalog export with the same column order.
"""
import base64
import binascii
import zipfile
from io import BytesIO
from pathlib import PurePath
from typing import Any, Iterable, Optional

import pandas as pd
from openpyxl.utils.exceptions import InvalidFileException

from app.core.config import settings
from app.error_handlers import ImportInputError
from app.logging_config import get_logger

logger = get_logger("parsers")

# Column order of the import template and the export; an export re-imports as-is.
CATALOG_COLUMNS = [
    "id",
    "sku",
    "barcode",
    "name",
    "description",
    "brand",
    "content",
    "color",
    "category",
    "price",
    "mrp",
    "default_discount",
    "discount_type",
    "uom",
    "stock",
    "expiry_date",
    "image",
    "is_active",
]

EXPORT_FORMATS = {
    "csv": "text/csv",
    "xlsx": "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet",
}


def file_extension(filename: Optional[str]) -> str:
    return PurePath(filename or "").suffix.lower().lstrip(".")


def decode_upload(file_base64: str, filename: Optional[str]) -> bytes:
    """Check the file type and decode a base64 upload (data: URLs accepted)."""
    extension = file_extension(filename)
    if extension not in settings.import_allowed_extensions:
        raise ImportInputError(
            f"Unsupported file type '.{extension}'" if extension else "File name has no extension",
            details={"allowed": sorted(settings.import_allowed_extensions)},
        )

    data = (file_base64 or "").strip()
    if data.startswith("data:") and "," in data:
        data = data.split(",", 1)[1]
    if not data:
        raise ImportInputError("Uploaded file is empty")

    try:
        content = base64.b64decode(data, validate=True)
    except (binascii.Error, ValueError):
        raise ImportInputError("file_base64 is not valid base64")

    if len(content) > settings.max_upload_size:
        raise ImportInputError(
            "Uploaded file is too large",
            details={"max_bytes": settings.max_upload_size, "size": len(content)},
        )
    if not content:
        raise ImportInputError("Uploaded file is empty")
    return content


def _clean_header(value: Any) -> str:
    return "_".join(str(value).strip().lower().split())


def _load_frame(content: bytes, extension: str) -> pd.DataFrame:
    if extension == "csv":
        return pd.read_csv(
            BytesIO(content),
            dtype=str,
            keep_default_na=False,
            skip_blank_lines=False,
            encoding="utf-8-sig",
        )
    return pd.read_excel(
        BytesIO(content),
        sheet_name=0,
        engine="openpyxl",
        dtype=str,
        keep_default_na=False,
    )


def read_spreadsheet(content: bytes, filename: Optional[str]) -> list[dict[str, str]]:
    """
    Parse file bytes into rows keyed by cleaned header.

    Raises ImportInputError for unreadable files, sheets without a header or
    data rows, and sheets longer than the configured row limit.
    """
    extension = file_extension(filename)
    try:
        df = _load_frame(content, extension)
    except (ValueError, zipfile.BadZipFile, InvalidFileException, KeyError, OSError) as e:
        logger.warning(f"Could not read spreadsheet '{filename}': {e}")
        raise ImportInputError(f"Could not read {extension.upper()} file: {e}")

    df.columns = [_clean_header(c) for c in df.columns]
    df = df.fillna("")

    rows = [
        {key: ("" if value is None else str(value).strip()) for key, value in record.items()}
        for record in df.to_dict(orient="records")
    ]
    # trailing blank lines are not rows
    while rows and not any(rows[-1].values()):
        rows.pop()

    if not rows:
        raise ImportInputError("The sheet has no data rows")
    if len(rows) > settings.import_max_rows:
        raise ImportInputError(
            f"The sheet has {len(rows)} rows; the limit is {settings.import_max_rows}",
            details={"rows": len(rows), "max_rows": settings.import_max_rows},
        )

    logger.debug(f"Read {len(rows)} row(s) from '{filename}'")
    return rows


def write_spreadsheet(records: Iterable[dict[str, Any]], fmt: str) -> bytes:
    """Serialize rows to CSV or XLSX with CATALOG_COLUMNS as the header."""
    df = pd.DataFrame(list(records), columns=CATALOG_COLUMNS)
    if fmt == "csv":
        return df.to_csv(index=False).encode("utf-8")
    if fmt == "xlsx":
        buffer = BytesIO()
        df.to_excel(buffer, index=False, sheet_name="Products", engine="openpyxl")
        return buffer.getvalue()
    raise ValueError(f"Unsupported export format: {fmt}")


def product_to_row(product) -> dict[str, Any]:
    """One export row for a Product; blanks for missing values."""
    row = {column: getattr(product, column, None) for column in CATALOG_COLUMNS}
    row["is_active"] = "true" if product.is_active else "false"
    return {k: ("" if v is None else v) for k, v in row.items()}
