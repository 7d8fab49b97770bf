from __future__ import annotations

import logging

import requests.exceptions
from lxml import etree
from requests_pkcs12 import post

from abrasf.config import SOAP_TIMEOUT
from abrasf.services.exceptions import (
    HttpStatusError,
    TransportConnectionError,
    TransportError,
    TransportTimeoutError,
)

logger = logging.getLogger(__name__)

CONTENT_TYPE = "text/xml; charset=utf-8"


def _fault_string(body: str) -> str | None:
    """Best-effort extraction of a SOAP 1.1 faultstring from an error body."""
    if not body:
        return None
    try:
        doc = etree.fromstring(body.encode("utf-8"), etree.XMLParser(resolve_entities=False, no_network=True))
    except (etree.XMLSyntaxError, ValueError):
        return None
    for el in doc.iter():
        if isinstance(el.tag, str) and etree.QName(el).localname == "faultstring":
            return (el.text or "").strip() or None
    return None


def post_envelope(
    envelope: bytes,
    url: str,
    soap_action: str,
    pfx_data: bytes,
    pfx_password: str,
    timeout: int = SOAP_TIMEOUT,
) -> str:
    """POST a SOAP envelope over mutual TLS and return the raw reply text.

    Uses the in-memory .pfx for the client certificate. Never retries: a
    timeout, a connection failure or a non-2xx status is raised to the caller.
    """
    headers = {"Content-Type": CONTENT_TYPE, "SOAPAction": soap_action}
    logger.debug("POST %s SOAPAction=%s (%d bytes)", url, soap_action, len(envelope))

    try:
        resp = post(
            url,
            data=envelope,
            headers=headers,
            pkcs12_data=pfx_data,
            pkcs12_password=pfx_password,
            timeout=timeout,
        )
    except requests.exceptions.Timeout as exc:
        logger.error("Timeout apos %ss ao comunicar com %s", timeout, url)
        raise TransportTimeoutError(f"Timeout ao comunicar com o WebService ({timeout}s)") from exc
    except requests.exceptions.ConnectionError as exc:
        logger.error("Falha de conexao com %s: %s", url, exc)
        raise TransportConnectionError(f"Falha de conexao com o WebService: {exc}") from exc
    except requests.exceptions.RequestException as exc:
        logger.error("Erro HTTP ao comunicar com %s: %s", url, exc)
        raise TransportError(f"Erro ao comunicar com o WebService: {exc}") from exc

    if not resp.ok:
        body = resp.text[:500] if resp.text else ""
        fault = _fault_string(resp.text or "")
        detalhe = fault or body
        logger.error("WebService retornou HTTP %s: %s", resp.status_code, detalhe)
        raise HttpStatusError(
            f"Erro na comunicacao com o WebService ({resp.status_code}): {detalhe}",
            status_code=resp.status_code,
            body=body,
        )

    if resp.encoding is None:
        resp.encoding = "utf-8"
    return resp.text
