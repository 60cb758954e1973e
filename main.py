from fastapi import FastAPI, UploadFile, File, Form
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse, StreamingResponse, Response
from typing import Optional
from io import BytesIO
import base64
import binascii
import logging

import httpx
from pydantic import BaseModel

import config
from docx_builder import (
    DOCX_MEDIA_TYPE,
    DocxOptions,
    convert_docx_to_pdf_bytes,
    rename_docx_to_pdf,
)
from document_engine import convert_pdf, structure_pdf
from pdf_reader import PDFExtractionError, extract_text

logging.basicConfig(
    level=config.LOG_LEVEL,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
)
logger = logging.getLogger(__name__)

STRUCTURE_OPTIONS = config.load_structure_options()


# ---------- Request models ----------
class Base64ConvertRequest(BaseModel):
    pdf_data: str
    filename: Optional[str] = None


class UrlConvertRequest(BaseModel):
    url: str
    filename: Optional[str] = None


app = FastAPI(title="Resume PDF Structurer", version=config.SERVICE_VERSION)

# Allow the web frontend (localhost dev servers) to call the service
app.add_middleware(
    CORSMiddleware,
    allow_origins=config.CORS_ALLOW_ORIGINS,
    allow_methods=["*"],
    allow_headers=["*"],
    expose_headers=["Content-Disposition"],
)


def _docx_options(
    title: Optional[str],
    creator: Optional[str],
    description: Optional[str],
) -> DocxOptions:
    opts = DocxOptions()
    if title:
        opts.title = title
    if creator:
        opts.creator = creator
    if description:
        opts.description = description
    opts.validate()
    return opts


def _docx_response(docx_bytes: bytes, filename: str) -> StreamingResponse:
    return StreamingResponse(
        BytesIO(docx_bytes),
        media_type=DOCX_MEDIA_TYPE,
        headers={"Content-Disposition": f'attachment; filename="{filename}"'},
    )


def fetch_pdf(url: str) -> bytes:
    """Download a PDF for conversion; raises httpx errors on failure."""
    resp = httpx.get(url, timeout=config.URL_FETCH_TIMEOUT, follow_redirects=True)
    resp.raise_for_status()
    return resp.content


@app.get("/health")
def health():
    return {
        "status": "healthy",
        "service": config.SERVICE_NAME,
        "version": config.SERVICE_VERSION,
    }


# ============================================================
# ======================== CONVERSION ========================
# ============================================================

@app.post("/convert")
async def convert_upload(
    file: UploadFile = File(...),
    title: Optional[str] = Form(None),
    creator: Optional[str] = Form(None),
    description: Optional[str] = Form(None),
):
    """
    Convert an uploaded resume PDF into a regenerated DOCX.
    """
    data = await file.read()

    try:
        docx_options = _docx_options(title, creator, description)
    except ValueError as e:
        return JSONResponse(status_code=400, content={"error": str(e)})

    try:
        result = convert_pdf(data, STRUCTURE_OPTIONS, docx_options, source_name=file.filename)
    except PDFExtractionError as e:
        return JSONResponse(status_code=400, content={"error": str(e)})
    except Exception as e:
        logger.exception("Conversion failed for %s", file.filename)
        return JSONResponse(
            status_code=500,
            content={"error": f"Failed to convert PDF to DOCX: {e}"},
        )

    return _docx_response(result.docx_bytes, result.filename)


@app.post("/convert/base64")
def convert_base64(req: Base64ConvertRequest):
    """
    JSON variant used by the web frontend:
      in:  {"pdf_data": "<base64>", "filename": "resume.pdf"}
      out: {"success": true, "docx_data": "<base64>", "filename": ..., "page_count": ..., "text_length": ...}
    """
    try:
        data = base64.b64decode(req.pdf_data, validate=True)
    except (binascii.Error, ValueError):
        return JSONResponse(
            status_code=400,
            content={"success": False, "error": "pdf_data is not valid base64."},
        )

    try:
        result = convert_pdf(data, STRUCTURE_OPTIONS, source_name=req.filename)
    except PDFExtractionError as e:
        return JSONResponse(status_code=400, content={"success": False, "error": str(e)})
    except Exception as e:
        logger.exception("Base64 conversion failed for %s", req.filename)
        return JSONResponse(
            status_code=500,
            content={"success": False, "error": f"Failed to convert PDF to DOCX: {e}"},
        )

    return {
        "success": True,
        "docx_data": base64.b64encode(result.docx_bytes).decode("ascii"),
        "filename": result.filename,
        "page_count": result.page_count,
        "text_length": result.text_length,
    }


@app.post("/convert/url")
def convert_url(req: UrlConvertRequest):
    """
    Fetch a PDF from a URL and return the regenerated DOCX.
    """
    url = req.url.strip()
    if not url.lower().startswith(("http://", "https://")):
        return JSONResponse(status_code=400, content={"error": "URL must start with http:// or https://"})

    try:
        data = fetch_pdf(url)
    except httpx.HTTPError as e:
        logger.warning("Failed to fetch %s: %s", url, e)
        return JSONResponse(
            status_code=502,
            content={"error": f"Failed to fetch PDF from URL: {e}"},
        )

    source_name = req.filename or url.rsplit("/", 1)[-1]
    try:
        result = convert_pdf(data, STRUCTURE_OPTIONS, source_name=source_name)
    except PDFExtractionError as e:
        return JSONResponse(status_code=400, content={"error": str(e)})
    except Exception as e:
        logger.exception("URL conversion failed for %s", url)
        return JSONResponse(
            status_code=500,
            content={"error": f"Failed to convert PDF to DOCX: {e}"},
        )

    return _docx_response(result.docx_bytes, result.filename)


# ============================================================
# ==================== PREVIEW / DEBUGGING ===================
# ============================================================

@app.post("/api/structure")
async def structure_upload(file: UploadFile = File(...)):
    """
    Return the structure the converter sees: classified blocks, contact
    info and the rendered output blocks.
    """
    data = await file.read()
    try:
        document = structure_pdf(data, STRUCTURE_OPTIONS)
    except PDFExtractionError as e:
        return JSONResponse(status_code=400, content={"error": str(e)})
    except Exception as e:
        logger.exception("Structuring failed for %s", file.filename)
        return JSONResponse(status_code=500, content={"error": f"Failed to structure PDF: {e}"})

    return document.to_dict()


@app.post("/api/extract-text")
async def extract_text_upload(file: UploadFile = File(...)):
    """
    Plain text of the PDF, page by page, with its metadata.
    """
    data = await file.read()
    try:
        result = extract_text(data)
    except PDFExtractionError as e:
        return JSONResponse(status_code=400, content={"error": str(e)})
    except Exception as e:
        logger.exception("Text extraction failed for %s", file.filename)
        return JSONResponse(status_code=500, content={"error": f"Failed to extract text: {e}"})

    return {"text": result.text, "pages": result.pages, "metadata": result.metadata}


@app.post("/api/preview-pdf")
async def preview_pdf(file: UploadFile = File(...)):
    """
    Return a PDF rendering of the regenerated DOCX.
    """
    data = await file.read()
    try:
        result = convert_pdf(data, STRUCTURE_OPTIONS, source_name=file.filename)
    except PDFExtractionError as e:
        return JSONResponse(status_code=400, content={"error": str(e)})
    except Exception as e:
        logger.exception("Preview conversion failed for %s", file.filename)
        return JSONResponse(
            status_code=500,
            content={"error": f"Failed to convert PDF to DOCX: {e}"},
        )

    try:
        pdf_bytes = convert_docx_to_pdf_bytes(result.docx_bytes)
    except RuntimeError as e:
        return Response(
            content=f"Preview conversion error: {e}",
            media_type="text/plain",
            status_code=500,
        )

    pdf_name = rename_docx_to_pdf(result.filename)
    return Response(
        content=pdf_bytes,
        media_type="application/pdf",
        headers={"Content-Disposition": f'inline; filename="{pdf_name}"'},
    )
