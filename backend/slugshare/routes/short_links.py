"""Shareable link routes: /s/{slug}, the ad screen, and the download proxy.

Browser-facing, so failures render small HTML pages instead of JSON.
"""
import logging
from typing import Optional

from fastapi import APIRouter, Depends, Query, Request
from fastapi.responses import HTMLResponse, RedirectResponse

from slugshare import pages
from slugshare.dependencies import get_ad_gate, get_clock, get_registry
from slugshare.errors import FileShareError, ValidationError
from slugshare.routes.files import file_response
from slugshare.services.access_gate import AccessDecision, evaluate
from slugshare.services.ad_gate import AdGate
from slugshare.services.clock import Clock
from slugshare.services.file_registry import FileRegistry

logger = logging.getLogger(__name__)

router = APIRouter(tags=["short-links"])

PROMPT_MESSAGES = {
    AccessDecision.PASSCODE_REQUIRED: (401, "This file is private. Please enter the passcode to download."),
    AccessDecision.PASSCODE_INVALID: (403, "Invalid passcode provided."),
}


@router.get("/s/{slug}")
async def open_short_link(
    slug: str,
    request: Request,
    passcode: Optional[str] = Query(None),
    registry: FileRegistry = Depends(get_registry),
    clock: Clock = Depends(get_clock),
    ad_gate: AdGate = Depends(get_ad_gate),
):
    """Serve a file through the ad gate."""
    redirect_to = ad_gate.gate(str(request.url), request.query_params)
    if redirect_to:
        logger.debug(f"Ad not seen for {slug}, redirecting to interstitial")
        return RedirectResponse(redirect_to, status_code=302)

    try:
        record = await registry.lookup(slug)
        decision = evaluate(record, clock(), passcode)
        if decision is AccessDecision.EXPIRED:
            return _error_page(410, "This file has expired and is no longer available.")
        if decision in PROMPT_MESSAGES:
            status_code, message = PROMPT_MESSAGES[decision]
            return HTMLResponse(pages.passcode_prompt(slug, message), status_code=status_code)
        data = await registry.read_content(record)
    except FileShareError as e:
        return _error_page(e.status_code, e.message)

    return file_response(record, data)


@router.get("/ad", response_class=HTMLResponse)
async def ad_screen(
    request: Request,
    download_url: Optional[str] = Query(None, alias="downloadUrl"),
    ad_gate: AdGate = Depends(get_ad_gate),
):
    """Placeholder ad with a countdown that then reopens the download link."""
    if not download_url:
        return _error_page(400, "Download link is incomplete.")
    if not ad_gate.is_same_origin(download_url, request.url.netloc):
        return _error_page(400, "Download link is not valid for this site.")
    return HTMLResponse(pages.ad_screen(ad_gate.armed_url(download_url), ad_gate.countdown_seconds))


@router.get("/download-proxy")
async def download_proxy(
    url: Optional[str] = Query(None),
    ad_gate: AdGate = Depends(get_ad_gate),
):
    """Send any download link through the ad screen first."""
    if not url:
        raise ValidationError("Download link is incomplete.")
    return RedirectResponse(ad_gate.interstitial_url(url), status_code=302)


def _error_page(status_code: int, message: str) -> HTMLResponse:
    return HTMLResponse(pages.error_page(message), status_code=status_code)
