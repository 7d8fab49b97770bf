from __future__ import annotations

from lxml import etree

from abrasf.config import XMLDSIG_NS

ROOT_PREFIX = "p"
TYPES_PREFIX = "p1"


def _localname(el: etree._Element) -> str:
    return etree.QName(el).localname


def _copy_content(src: etree._Element, dst: etree._Element) -> None:
    for key, value in src.attrib.items():
        dst.set(etree.QName(key).localname, value)
    dst.text = src.text


def _convert_children(
    src: etree._Element,
    dst: etree._Element,
    types_ns: str,
    in_signature: bool,
) -> None:
    for child in src:
        if not isinstance(child.tag, str):
            # comments and processing instructions are not carried over
            continue
        signature = in_signature or _localname(child) == "Signature"
        ns = XMLDSIG_NS if signature else types_ns
        if signature and not in_signature:
            new = etree.SubElement(dst, f"{{{ns}}}{_localname(child)}", nsmap={None: XMLDSIG_NS})  # type: ignore[dict-item]
        else:
            new = etree.SubElement(dst, f"{{{ns}}}{_localname(child)}")
        _copy_content(child, new)
        new.tail = child.tail
        _convert_children(child, new, types_ns, signature)


def renamespace(src: etree._Element, root_ns: str, types_ns: str) -> etree._Element:
    """Return a copy of *src* moved into a provider's wire namespaces.

    The root goes to *root_ns* (prefix ``p``), every other element to
    *types_ns* (prefix ``p1``), and a ``Signature`` element with its whole
    subtree stays in XML-DSig without prefix. Attributes other than namespace
    declarations and text are copied verbatim. *src* is not modified.
    """
    in_signature = _localname(src) == "Signature"
    if in_signature:
        root = etree.Element(f"{{{XMLDSIG_NS}}}{_localname(src)}", nsmap={None: XMLDSIG_NS})  # type: ignore[dict-item]
    else:
        root = etree.Element(
            f"{{{root_ns}}}{_localname(src)}",
            nsmap={ROOT_PREFIX: root_ns, TYPES_PREFIX: types_ns},
        )
    _copy_content(src, root)
    _convert_children(src, root, types_ns, in_signature)
    return root
