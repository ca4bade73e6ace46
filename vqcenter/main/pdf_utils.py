"""Utilities for turning rendered report HTML into PDF bytes."""
from __future__ import annotations

import os

from flask import current_app, has_app_context


class PdfGenerationError(RuntimeError):
    """Raised when no PDF backend is able to render the report."""


_WEASYPRINT_MESSAGE = (
    "Unable to generate PDF exports because WeasyPrint's native dependencies "
    "are missing. Install the Pango and Cairo libraries to enable PDF "
    "generation."
)

_WKHTMLTOPDF_MESSAGE = (
    "Unable to generate PDF exports using the wkhtmltopdf fallback because the "
    "binary is not installed or configured. Set the WKHTMLTOPDF_CMD environment "
    "variable to the wkhtmltopdf executable."
)


def _render_with_weasyprint(html: str, base_url: str | None = None) -> bytes:
    try:
        from weasyprint import HTML
        from weasyprint.text.fonts import FontConfiguration
    except (ImportError, OSError) as exc:
        raise PdfGenerationError(_WEASYPRINT_MESSAGE) from exc

    try:
        return HTML(string=html, base_url=base_url).write_pdf(
            font_config=FontConfiguration()
        )
    except OSError as exc:
        raise PdfGenerationError(_WEASYPRINT_MESSAGE) from exc


def _wkhtmltopdf_command() -> str | None:
    """Return ``WKHTMLTOPDF_CMD`` from the environment or the Flask config."""

    env_value = os.environ.get("WKHTMLTOPDF_CMD")
    if env_value:
        return env_value

    if has_app_context():
        return current_app.config.get("WKHTMLTOPDF_CMD")
    return None


def _render_with_wkhtmltopdf(html: str, base_url: str | None = None) -> bytes:
    try:
        import pdfkit
    except ImportError as exc:
        raise PdfGenerationError(_WKHTMLTOPDF_MESSAGE) from exc

    command = _wkhtmltopdf_command()
    try:
        configuration = (
            pdfkit.configuration(wkhtmltopdf=command)
            if command
            else pdfkit.configuration()
        )
    except OSError as exc:
        raise PdfGenerationError(_WKHTMLTOPDF_MESSAGE) from exc

    options: dict[str, str] = {"encoding": "UTF-8", "quiet": ""}
    if base_url:
        options["enable-local-file-access"] = ""

    try:
        return pdfkit.from_string(html, False, options=options, configuration=configuration)
    except (OSError, IOError) as exc:
        raise PdfGenerationError(_WKHTMLTOPDF_MESSAGE) from exc


def render_html_to_pdf(html: str, base_url: str | None = None) -> bytes:
    """Render HTML with WeasyPrint, falling back to wkhtmltopdf.

    Raises :class:`PdfGenerationError` carrying both backends' messages when
    neither is usable.
    """

    try:
        return _render_with_weasyprint(html, base_url=base_url)
    except PdfGenerationError as exc:
        weasyprint_error = exc

    try:
        return _render_with_wkhtmltopdf(html, base_url=base_url)
    except PdfGenerationError as exc:
        raise PdfGenerationError(f"{weasyprint_error} {exc}") from exc
