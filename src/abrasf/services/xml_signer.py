from __future__ import annotations

import logging

from lxml import etree
from signxml.algorithms import (
    DigestAlgorithm,
    SignatureConstructionMethod,
    SignatureMethod,
)
from signxml.signer import XMLSigner

from abrasf.config import C14N_ALGORITHM, XMLDSIG_NS
from abrasf.services.exceptions import SignatureError

logger = logging.getLogger(__name__)


def signable_ids(doc: etree._Element) -> list[str]:
    """Id values of every element carrying an ``Id`` attribute, in document order."""
    return [el.get("Id") for el in doc.iter() if isinstance(el.tag, str) and el.get("Id")]


def sign_document(doc: etree._Element, key_pem: bytes, cert_pem: bytes) -> etree._Element:
    """Append one enveloped RSA-SHA256 signature to the document root.

    Every element bearing an ``Id`` attribute gets its own ``#id`` reference,
    with the enveloped-signature and inclusive C14N transforms. The signature
    uses the XML-DSig namespace without prefix and carries the X.509
    certificate in KeyInfo.
    """
    ids = signable_ids(doc)
    if not ids:
        raise SignatureError(
            f"Nenhum elemento com atributo Id encontrado em {etree.QName(doc).localname}"
        )

    signer = XMLSigner(
        method=SignatureConstructionMethod.enveloped,
        signature_algorithm=SignatureMethod.RSA_SHA256,
        digest_algorithm=DigestAlgorithm.SHA256,
        c14n_algorithm=C14N_ALGORITHM,
    )
    signer.namespaces = {None: XMLDSIG_NS}

    logger.debug("Assinando %s com %d referencia(s)", etree.QName(doc).localname, len(ids))
    signed = signer.sign(
        doc,
        key=key_pem,
        cert=cert_pem.decode(),
        reference_uri=[f"#{i}" for i in ids],
    )
    return signed
